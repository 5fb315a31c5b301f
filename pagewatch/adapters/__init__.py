"""Adapters package initialization."""
from pagewatch.adapters.browser import BrowserSession, BrowserSessionManager, LaunchConfig
from pagewatch.adapters.storage import AppwriteStorageClient, StoredFile

__all__ = [
    "BrowserSession",
    "BrowserSessionManager",
    "LaunchConfig",
    "AppwriteStorageClient",
    "StoredFile",
]
