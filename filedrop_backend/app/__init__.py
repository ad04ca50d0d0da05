"""
FileDrop Backend Package

This package contains the FastAPI application that receives batches of
files and writes them under a configurable destination directory.
"""

from .main import app  # noqa: F401
