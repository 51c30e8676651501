from .entity_store import EntityStore
from .factory import build_store
from .metadata_store import MetadataStore

__all__ = ["EntityStore", "MetadataStore", "build_store"]
