"""Storage backends, item model and the directory adapter."""

from share_service.services.directory import OwnerDirectory
from share_service.services.item import Item, RenderMode
from share_service.services.storage import StorageBackend, create_storage

__all__ = ["Item", "OwnerDirectory", "RenderMode", "StorageBackend", "create_storage"]
