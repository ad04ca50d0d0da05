"""File storage utilities.

Path derivation for uploaded files plus the small filesystem primitives the
upload pipeline and the browse endpoints rely on.  A declared relative path
such as ``"photos/2024/a.jpg"`` maps to ``<root>/photos/2024/a.jpg``; a bare
``"a.jpg"`` lands directly in the root.
"""
from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass
from pathlib import Path, PureWindowsPath
from typing import List

from .errors import InvalidRelativePath


@dataclass(frozen=True)
class ResolvedTarget:
    root: Path
    directory: Path
    filename: str

    @property
    def path(self) -> Path:
        return self.directory / self.filename

    @property
    def is_root_level(self) -> bool:
        return self.directory == self.root


class PathResolver:
    """Maps declared relative paths onto the destination root."""

    def resolve(self, destination_root: Path, declared_path: str) -> ResolvedTarget:
        root = Path(destination_root).resolve()
        directory_part, filename = split_declared_path(declared_path)
        directory = root if directory_part in ("", ".") else root.joinpath(*directory_part.split("/"))

        # symlinked folders inside the root must not lead back out of it; an
        # existing entry at the leaf, symlink or not, is left to the guard
        try:
            directory.resolve().relative_to(root)
        except ValueError:
            raise InvalidRelativePath(declared_path, "path escapes destination root")

        return ResolvedTarget(root=root, directory=directory, filename=filename)

    def ensure_directory(self, target: ResolvedTarget) -> None:
        """Create the target directory; the root itself is never created here."""
        if target.is_root_level:
            return
        ensure_directory_exists(target.directory)


def split_declared_path(declared_path: str):
    """Split a declared path into ``(directory, filename)``.

    Both ``/`` and ``\\`` count as separators.  Empty and absolute paths
    (drive-qualified ones on Windows) are rejected, as is anything whose
    normalised form climbs above the root.
    """
    if declared_path is None or not declared_path.strip():
        raise InvalidRelativePath(declared_path or "", "empty path")

    normalized = declared_path.replace("\\", "/")
    # "a:b.txt" is an ordinary file name outside Windows
    drive = PureWindowsPath(declared_path).drive if os.name == "nt" else ""
    if normalized.startswith("/") or drive:
        raise InvalidRelativePath(declared_path, "absolute path not allowed")
    if normalized.endswith("/"):
        raise InvalidRelativePath(declared_path, "missing file name")

    clean = posixpath.normpath(normalized)
    if clean == ".." or clean.startswith("../"):
        raise InvalidRelativePath(declared_path, "path escapes destination root")

    directory, filename = posixpath.split(clean)
    if filename in ("", ".", ".."):
        raise InvalidRelativePath(declared_path, "missing file name")
    return directory, filename


def ensure_directory_exists(path: Path) -> None:
    """Create ``path`` and any missing parents; no-op if it already exists."""
    os.makedirs(path, exist_ok=True)


def path_exists(path: Path) -> bool:
    return os.path.lexists(path)


def list_subfolders(base: str) -> List[str]:
    """Names of the immediate subdirectories of ``base``; empty if it is not a directory."""
    if not base or not os.path.isdir(base):
        return []
    with os.scandir(base) as entries:
        return sorted(entry.name for entry in entries if entry.is_dir())


def create_folder(base: str, name: str) -> Path:
    """Create ``base/name`` (recursively) and return it.

    ``name`` must be a single path segment.
    """
    if not name or name in (".", "..") or "/" in name or "\\" in name:
        raise ValueError(f"invalid folder name: {name!r}")
    full = Path(base) / name
    ensure_directory_exists(full)
    return full
