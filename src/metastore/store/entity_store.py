"""Generic CRUD and paginated listing for one entity kind."""

from typing import Any, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from metastore.context import OperationContext
from metastore.database.client import Database
from metastore.errors import (
    AlreadyExists,
    Cancelled,
    Internal,
    InvalidArgument,
    NotFound,
    StoreError,
)
from metastore.filtering.compiler import FilterCompiler
from metastore.models import BatchItemResult, BatchResult, ListPage
from metastore.pagination.cursor import CursorCodec
from metastore.utils.logging import get_logger
from metastore.utils.time import utc_now_z

from .kinds import EntityKind

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

DEFAULT_PAGE_SIZE = 100


class EntityStore(Generic[T]):
    """
    CRUD + List for a single entity kind.

    Every backend or serialization failure is translated into a StoreError
    before it leaves this class. Create/Update/Delete each run one statement;
    List runs one statement that returns the page together with each row's
    ordinal and the total matching count.
    """

    def __init__(
        self,
        db: Database,
        kind: EntityKind,
        codec: CursorCodec,
        filter_compiler: Optional[FilterCompiler] = None,
        strict_page_tokens: bool = False,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.db = db
        self.kind = kind
        self.codec = codec
        self.filter_compiler = filter_compiler or FilterCompiler()
        self.strict_page_tokens = strict_page_tokens
        self.default_page_size = default_page_size

    # ==================== helpers ====================

    @property
    def _table(self):
        return self.kind.table

    def _require_scope(self, scope_key: Optional[str]) -> None:
        if self.kind.scope_column is not None and not scope_key:
            raise InvalidArgument(f"{self.kind.label} requires a project id")

    def _key_clause(self, scope_key: Optional[str], entity_id: str):
        clauses = [self._table.c[self.kind.id_column] == entity_id]
        if self.kind.scope_column is not None:
            clauses.append(self._table.c[self.kind.scope_column] == scope_key)
        return and_(*clauses)

    def _serialize(self, entity: T) -> Dict[str, Any]:
        try:
            return entity.model_dump(mode="json")
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize {self.kind.label} {entity.name!r}: {e}")
            raise Internal(f"Failed to serialize {self.kind.label}") from e

    def _to_entity(self, scope_key: Optional[str], entity_id: str, data: Any) -> T:
        name = self.kind.name_for(scope_key, entity_id)
        if self.kind.payload_column is None:
            return self.kind.model(name=name)
        try:
            entity = self.kind.model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Failed to deserialize {self.kind.label} {name!r}: {e}")
            raise Internal(f"Failed to deserialize {self.kind.label} from database") from e
        # Output-only identity is always derived from the key columns
        entity.name = name
        return entity

    def _backend_error(self, error: SQLAlchemyError, action: str, ctx: Optional[OperationContext]) -> StoreError:
        if ctx is not None and (ctx.cancelled or ctx.expired):
            logger.info(f"{self.kind.label} {action} abandoned: {error}")
            return Cancelled(f"{self.kind.label} {action} cancelled")
        logger.error(f"Failed to {action} {self.kind.label} in database: {error}", exc_info=True)
        return Internal(f"Failed to {action} {self.kind.label} in database")

    def _not_found(self, scope_key: Optional[str], entity_id: str) -> NotFound:
        return NotFound(f"{self.kind.label} with name {self.kind.name_for(scope_key, entity_id)!r} does not exist")

    # ==================== CRUD ====================

    def create(
        self,
        scope_key: Optional[str],
        entity_id: Optional[str],
        entity: Optional[T] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> T:
        """
        Insert a new entity and return a populated copy of it.

        The caller's object is never modified. Occurrence ids are generated;
        other kinds take ``entity_id`` from the caller.

        Raises:
            AlreadyExists: If an entity with the same key exists
            InvalidArgument: If the id or project is missing, or a reference is unparsable
            Internal: On any other backend or serialization failure
        """
        self._require_scope(scope_key)
        if self.kind.generate_id is not None:
            entity_id = self.kind.generate_id()
        elif not entity_id:
            raise InvalidArgument(f"{self.kind.label} id is required")

        entity = entity.model_copy(deep=True) if entity is not None else self.kind.model()
        entity.name = self.kind.name_for(scope_key, entity_id)

        values: Dict[str, Any] = {self.kind.id_column: entity_id}
        if self.kind.scope_column is not None:
            values[self.kind.scope_column] = scope_key
        if self.kind.row_values is not None:
            values.update(self.kind.row_values(entity))
        if self.kind.payload_column is not None:
            entity.create_time = utc_now_z()
            values[self.kind.payload_column] = self._serialize(entity)

        try:
            with self.db.session_context(ctx) as session:
                session.execute(insert(self._table).values(**values))
                session.commit()
        except IntegrityError as e:
            logger.debug(f"{self.kind.label} already exists: {entity.name}")
            raise AlreadyExists(f"{self.kind.label} with name {entity.name!r} already exists") from e
        except SQLAlchemyError as e:
            raise self._backend_error(e, "insert", ctx) from e

        logger.debug(f"Created {self.kind.label}: {entity.name}")
        return entity

    def batch_create(
        self,
        scope_key: Optional[str],
        entities: Iterable[Tuple[Optional[str], T]],
        *,
        ctx: Optional[OperationContext] = None,
    ) -> BatchResult:
        """
        Create each ``(entity_id, entity)`` pair independently.

        Failures do not stop the batch; each input position gets a result
        holding either the created entity or its StoreError. Cancellation
        stops the batch and raises.
        """
        results: List[BatchItemResult] = []
        for index, (entity_id, entity) in enumerate(entities):
            if ctx is not None:
                ctx.check()
            try:
                created = self.create(scope_key, entity_id, entity, ctx=ctx)
            except Cancelled:
                raise
            except StoreError as e:
                logger.info(f"Skipping {self.kind.label} at batch position {index}: {e}")
                results.append(BatchItemResult(index=index, entity_id=entity_id, error=e))
                continue
            results.append(
                BatchItemResult(index=index, entity_id=created.name.rsplit("/", 1)[-1], value=created)
            )
        return BatchResult(results=results)

    def get(
        self,
        scope_key: Optional[str],
        entity_id: str,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> T:
        """
        Fetch one entity by key.

        Raises:
            NotFound: If no row matches
            Internal: On backend or deserialization failure
        """
        self._require_scope(scope_key)
        if self.kind.payload_column is not None:
            column = self._table.c[self.kind.payload_column]
        else:
            column = self._table.c.id
        stmt = select(column).where(self._key_clause(scope_key, entity_id))

        try:
            with self.db.session_context(ctx) as session:
                row = session.execute(stmt).first()
        except SQLAlchemyError as e:
            raise self._backend_error(e, "query", ctx) from e

        if row is None:
            raise self._not_found(scope_key, entity_id)
        return self._to_entity(scope_key, entity_id, row[0])

    def update(
        self,
        scope_key: Optional[str],
        entity_id: str,
        entity: T,
        field_mask: Optional[List[str]] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> T:
        """
        Replace the stored payload of an existing entity.

        ``field_mask`` is accepted for API compatibility but every field is
        written. ``update_time`` is always refreshed.

        Raises:
            NotFound: If no row was affected (no row is created)
            InvalidArgument: If the kind has no payload or a reference is unparsable
            Internal: On backend or serialization failure
        """
        if self.kind.payload_column is None:
            raise InvalidArgument(f"{self.kind.label} has no mutable fields")
        self._require_scope(scope_key)

        entity = entity.model_copy(deep=True)
        entity.name = self.kind.name_for(scope_key, entity_id)
        entity.update_time = utc_now_z()

        values: Dict[str, Any] = {}
        if self.kind.row_values is not None:
            values.update(self.kind.row_values(entity))
        values[self.kind.payload_column] = self._serialize(entity)

        stmt = update(self._table).where(self._key_clause(scope_key, entity_id)).values(**values)
        try:
            with self.db.session_context(ctx) as session:
                affected = session.execute(stmt).rowcount
                session.commit()
        except SQLAlchemyError as e:
            raise self._backend_error(e, "update", ctx) from e

        if affected == 0:
            raise self._not_found(scope_key, entity_id)
        return entity

    def delete(
        self,
        scope_key: Optional[str],
        entity_id: str,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> None:
        """
        Delete one entity by key.

        Raises:
            NotFound: If no row was affected
            Internal: On backend failure
        """
        self._require_scope(scope_key)
        stmt = delete(self._table).where(self._key_clause(scope_key, entity_id))
        try:
            with self.db.session_context(ctx) as session:
                affected = session.execute(stmt).rowcount
                session.commit()
        except SQLAlchemyError as e:
            raise self._backend_error(e, "delete", ctx) from e

        if affected == 0:
            raise self._not_found(scope_key, entity_id)

    # ==================== List ====================

    def list(
        self,
        scope_key: Optional[str],
        filter_expression: str = "",
        page_token: str = "",
        page_size: Optional[int] = None,
        *,
        where: Optional[Dict[str, Any]] = None,
        ctx: Optional[OperationContext] = None,
    ) -> ListPage:
        """
        Return up to ``page_size`` entities after the position in ``page_token``.

        Rows are ordered by row marker. The returned token is empty once the
        last row of the matching set has been returned.

        Args:
            scope_key: Scope to list in; None lists across scopes
            filter_expression: Filter over the payload; empty means no filter
            page_token: Token from a previous page; empty starts from the beginning
            page_size: Maximum rows to return; non-positive uses the default
            where: Extra column equality conditions (e.g. the note reference)

        Raises:
            InvalidArgument: Unparsable filter, unknown column, or (strict mode) bad token
            EncodingError: If the next token cannot be encrypted
            Internal: On backend or deserialization failure
        """
        if page_size is None or page_size <= 0:
            page_size = self.default_page_size

        if self.strict_page_tokens:
            watermark = self.codec.decode_strict(page_token, 0)
        else:
            watermark = self.codec.decode(page_token, 0)

        table = self._table
        conditions = []
        if self.kind.scope_column is not None and scope_key is not None:
            conditions.append(table.c[self.kind.scope_column] == scope_key)
        for column, value in (where or {}).items():
            if column not in table.c:
                raise InvalidArgument(f"Unknown column {column!r} for {self.kind.label}")
            conditions.append(table.c[column] == value)
        if filter_expression:
            if self.kind.payload_column is None:
                raise InvalidArgument(f"Filtering is not supported for {self.kind.label}")
            conditions.append(
                self.filter_compiler.compile(filter_expression, table.c[self.kind.payload_column])
            )

        columns = [table.c.id.label("marker"), table.c[self.kind.id_column].label("entity_id")]
        if self.kind.scope_column is not None:
            columns.append(table.c[self.kind.scope_column].label("scope_key"))
        if self.kind.payload_column is not None:
            columns.append(table.c[self.kind.payload_column].label("payload"))
        columns.append(func.row_number().over(order_by=table.c.id).label("ordinal"))
        columns.append(func.count().over().label("total"))

        matching = select(*columns).where(*conditions).subquery("matching")
        stmt = (
            select(matching)
            .where(matching.c.marker > watermark)
            .order_by(matching.c.marker)
            .limit(page_size)
        )

        try:
            with self.db.session_context(ctx) as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise self._backend_error(e, "list", ctx) from e

        if not rows:
            return ListPage(items=[], next_page_token="")

        items = [
            self._to_entity(
                getattr(row, "scope_key", None),
                row.entity_id,
                getattr(row, "payload", None),
            )
            for row in rows
        ]
        last = rows[-1]
        if last.ordinal == last.total:
            return ListPage(items=items, next_page_token="")
        return ListPage(items=items, next_page_token=self.codec.encode(last.marker))
