import streamlit as st
import requests
from typing import List, Optional

import os
API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")

# --- PAGE CONFIG ---
st.set_page_config(
    page_title="FileDrop",
    layout="wide",
    initial_sidebar_state="expanded",
)

# --- GLOBAL STYLE OVERRIDES ---
st.markdown(
    """
    <style>
    .stApp {
        background-color: #f7f9fc;
        font-family: -apple-system, BlinkMacSystemFont, 'Inter', 'Segoe UI', Roboto, sans-serif;
    }
    h1, h2, h3, h4, h5, h6 {
        color: #1f2937;
        font-weight: 600;
        letter-spacing: -0.03em;
    }
    div[data-testid="stSidebar"] {
        background-color: #1f2937 !important;
        color: #f9fafb !important;
    }
    div[data-testid="stSidebar"] p,
    div[data-testid="stSidebar"] span,
    div[data-testid="stSidebar"] label {
        color: #f9fafb !important;
    }
    .stButton>button {
        border-radius: 8px;
        background-color: #2563eb;
        color: #fff;
        border: 0;
        padding: 0.6em 0.9em;
        font-weight: 600;
    }
    .stButton>button:hover {
        background-color: #1e40af;
        color: #fff;
    }
    .dest-path {
        font-family: ui-monospace, SFMono-Regular, Menlo, monospace;
        font-size: 0.85rem;
        word-break: break-all;
    }
    </style>
    """,
    unsafe_allow_html=True,
)

# --- SESSION STATE ---
def init_session():
    if "browse_path" not in st.session_state:
        st.session_state.browse_path = ""
    if "destination" not in st.session_state:
        st.session_state.destination = None
    if "last_result" not in st.session_state:
        st.session_state.last_result = None
    if "health" not in st.session_state:
        st.session_state.health = None


def error_text(resp: requests.Response) -> str:
    try:
        return resp.json().get("detail", resp.text)
    except Exception:
        return resp.text


def fetch_destination() -> Optional[str]:
    try:
        resp = requests.get(f"{API_BASE}/api/destination", timeout=10)
        if resp.status_code == 200:
            return resp.json().get("path")
    except Exception as e:
        st.error(f"Error fetching destination: {e}")
    return None


def fetch_drives() -> List[str]:
    try:
        resp = requests.get(f"{API_BASE}/api/drives", timeout=10)
        if resp.status_code == 200:
            return resp.json()
        st.error(f"Failed to list drives ({resp.status_code}): {resp.text}")
    except Exception as e:
        st.error(f"Error listing drives: {e}")
    return []


def fetch_folders(path: str) -> List[str]:
    if not path:
        return []
    try:
        resp = requests.get(f"{API_BASE}/api/folders", params={"path": path}, timeout=10)
        if resp.status_code == 200:
            return resp.json()
    except Exception as e:
        st.error(f"Error listing folders: {e}")
    return []


def create_folder(base: str, name: str):
    try:
        resp = requests.post(
            f"{API_BASE}/api/create-folder",
            json={"path": base, "name": name},
            timeout=10,
        )
    except Exception as e:
        return (False, f"Create folder request failed: {e}")
    if resp.status_code == 200:
        return (True, f"Folder created: {name}")
    return (False, f"Create folder failed ({resp.status_code}): {error_text(resp)}")


def set_destination(path: str):
    try:
        resp = requests.post(f"{API_BASE}/set-path", json={"path": path}, timeout=10)
    except Exception as e:
        return (False, f"Set destination request failed: {e}")
    if resp.status_code == 200:
        return (True, f"Destination set: {path}")
    return (False, f"Set destination failed ({resp.status_code}): {error_text(resp)}")


def fetch_health() -> dict:
    try:
        resp = requests.get(f"{API_BASE}/health/", timeout=10)
        if resp.status_code == 200:
            return resp.json()
        return {"error": f"{resp.status_code} {resp.text}"}
    except Exception as e:
        return {"error": str(e)}


def upload_files(uploaded_files, prefix: str):
    """Send all chosen files in one batch; each part's filename is its relative path."""
    prefix = prefix.strip().strip("/")
    files = []
    for f in uploaded_files:
        relative = f"{prefix}/{f.name}" if prefix else f.name
        files.append(("files", (relative, f.getvalue(), f.type or "application/octet-stream")))

    try:
        resp = requests.post(f"{API_BASE}/upload", files=files, timeout=600)
    except Exception as e:
        return (False, f"Upload request failed: {e}")

    if resp.status_code == 200:
        return (True, resp.json())
    return (False, f"Upload failed ({resp.status_code}): {error_text(resp)}")


init_session()
st.session_state.destination = fetch_destination()

# SIDEBAR
with st.sidebar:
    st.markdown("## 📂 FileDrop")
    if st.session_state.destination:
        st.markdown("**Destination:**")
        st.markdown(f'<div class="dest-path">{st.session_state.destination}</div>', unsafe_allow_html=True)
    else:
        st.markdown("**Destination:** not set ⚠️")
    st.markdown("---")
    st.caption("• Pick a destination folder first.\n• Existing files are never overwritten; they are reported as skipped.")

tab_dest, tab_upload, tab_status = st.tabs(["📁 Destination", "⬆️ Upload", "🩺 Status"])

# --- TAB: DESTINATION ---
with tab_dest:
    st.subheader("Choose where uploads go")

    drives = fetch_drives()
    if drives:
        drive = st.selectbox("Drive", options=drives)
        if st.button("Browse drive"):
            st.session_state.browse_path = drive

    browse_path = st.text_input("Folder", value=st.session_state.browse_path, key="browse_input")
    st.session_state.browse_path = browse_path

    folders = fetch_folders(browse_path)
    if folders:
        child = st.selectbox("Subfolders", options=folders)
        if st.button("Open subfolder"):
            st.session_state.browse_path = os.path.join(browse_path, child)
            st.rerun()
    elif browse_path:
        st.info("No subfolders here.")

    new_folder = st.text_input("New folder name", key="new_folder")
    if st.button("Create folder"):
        if not browse_path or not new_folder:
            st.warning("Pick a folder and a name first.")
        else:
            ok, msg = create_folder(browse_path, new_folder)
            if ok:
                st.success(msg)
            else:
                st.error(msg)

    if st.button("Use this folder as destination"):
        ok, msg = set_destination(browse_path)
        if ok:
            st.success(msg)
            st.rerun()
        else:
            st.error(msg)

# --- TAB: UPLOAD ---
with tab_upload:
    st.subheader("Upload files")

    if not st.session_state.destination:
        st.info("Set a destination in the Destination tab first.")
    else:
        chosen = st.file_uploader("Choose files", accept_multiple_files=True)
        prefix = st.text_input("Subfolder inside the destination (optional)", placeholder="e.g. photos/2024")

        if st.button("Upload"):
            if not chosen:
                st.warning("Please choose at least one file.")
            else:
                with st.spinner(f"Uploading {len(chosen)} file(s)..."):
                    ok, result = upload_files(chosen, prefix)
                if ok:
                    st.session_state.last_result = result
                else:
                    st.error(result)

        result = st.session_state.last_result
        if result:
            c1, c2, c3 = st.columns(3)
            c1.metric("Uploaded", result.get("uploaded", 0))
            c2.metric("Skipped", result.get("skipped", 0))
            c3.metric("Failed", result.get("failed", 0))
            if result.get("skippedFiles"):
                with st.expander("Skipped (already exist)"):
                    for name in result["skippedFiles"]:
                        st.write(name)
            if result.get("failedFiles"):
                with st.expander("Failed", expanded=True):
                    for item in result["failedFiles"]:
                        st.write(f"{item['file']}: {item['reason']}")

# --- TAB: STATUS ---
with tab_status:
    st.subheader("Backend status")
    if st.button("Refresh status"):
        st.session_state.health = fetch_health()
    if st.session_state.health:
        st.json(st.session_state.health)
