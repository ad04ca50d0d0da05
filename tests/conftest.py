import pytest
from fastapi.testclient import TestClient

from filedrop_backend.app.core.config import Settings
from filedrop_backend.app.main import create_app


@pytest.fixture
def dest_root(tmp_path):
    root = tmp_path / "dest"
    root.mkdir()
    return root


@pytest.fixture
def app_settings():
    s = Settings()
    s.DESTINATION = None
    s.MAX_FILE_SIZE_BYTES = 1024 * 1024
    s.MAX_FILES_PER_BATCH = 50
    s.UPLOAD_WORKERS = 4
    s.CHUNK_SIZE = 1024
    s.CORS_ORIGINS = ["*"]
    return s


@pytest.fixture
def unset_client(app_settings):
    with TestClient(create_app(app_settings)) as c:
        yield c


@pytest.fixture
def client(app_settings, dest_root):
    app_settings.DESTINATION = str(dest_root)
    with TestClient(create_app(app_settings)) as c:
        yield c
