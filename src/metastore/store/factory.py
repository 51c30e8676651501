from typing import Any, Dict, Optional

from metastore.config.loader import normalize_config
from metastore.database.client import Database, DatabaseConfig
from metastore.filtering.compiler import FilterCompiler
from metastore.pagination.cursor import CursorCodec, resolve_pagination_key

from .metadata_store import MetadataStore


def build_store(
    config: Dict[str, Any] | None = None,
    filter_compiler: Optional[FilterCompiler] = None,
    create_tables: bool = False,
) -> MetadataStore:
    """
    Wire database, cursor codec and entity stores from a config dict.

    Fails at startup (ValueError) when the configured pagination key is malformed.
    """
    config = normalize_config(config)
    pagination = config["pagination"]
    key = resolve_pagination_key(pagination["key"])

    database = config["database"]
    db = Database.from_config(
        DatabaseConfig(
            url=database["url"],
            pool_size=database["pool_size"],
            max_overflow=database["max_overflow"],
            pool_recycle=database["pool_recycle"],
            echo=database["echo"],
        )
    )
    if create_tables:
        db.create_tables()

    return MetadataStore(
        db,
        CursorCodec(key),
        filter_compiler=filter_compiler,
        strict_page_tokens=pagination["strict_tokens"],
        default_page_size=pagination["default_page_size"],
    )
