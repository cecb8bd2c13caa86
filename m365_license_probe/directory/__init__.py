from .client import DirectoryClient, PROVISIONING_ERROR_SOURCES

__all__ = [
    "DirectoryClient",
    "PROVISIONING_ERROR_SOURCES",
]
