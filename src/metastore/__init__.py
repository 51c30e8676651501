"""Persistence adapter for projects, notes and occurrences.

Key rules:

1. Callers only see StoreError subclasses, never driver exceptions
2. Page tokens are opaque; only metastore.pagination reads or builds them
3. Resource names are derived from key columns, never read from payloads
"""

from metastore.context import OperationContext
from metastore.errors import (
    AlreadyExists,
    Cancelled,
    EncodingError,
    Internal,
    InvalidArgument,
    NotFound,
    StoreError,
)
from metastore.models import BatchItemResult, BatchResult, ListPage, Note, Occurrence, Project
from metastore.store import MetadataStore, build_store

__all__ = [
    "AlreadyExists",
    "BatchItemResult",
    "BatchResult",
    "Cancelled",
    "EncodingError",
    "Internal",
    "InvalidArgument",
    "ListPage",
    "MetadataStore",
    "Note",
    "NotFound",
    "Occurrence",
    "OperationContext",
    "Project",
    "StoreError",
    "build_store",
]
