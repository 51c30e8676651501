"""Metadata store: projects, notes and occurrences over one database."""

from typing import List, Mapping, Optional, Sequence

from metastore import names
from metastore.context import OperationContext
from metastore.database.client import Database
from metastore.errors import InvalidArgument
from metastore.filtering.compiler import FilterCompiler
from metastore.models import BatchResult, ListPage, Note, Occurrence, Project
from metastore.pagination.cursor import CursorCodec
from metastore.utils.logging import get_logger

from .entity_store import DEFAULT_PAGE_SIZE, EntityStore
from .kinds import NOTE_KIND, OCCURRENCE_KIND, PROJECT_KIND

logger = get_logger(__name__)


class MetadataStore:
    """
    Per-kind entity stores plus lookups that span kinds.

    Lookups that read one entity and then another (e.g. resolving the note
    behind an occurrence) are not isolated from concurrent deletes; a delete
    racing them surfaces as NotFound.
    """

    def __init__(
        self,
        db: Database,
        codec: CursorCodec,
        filter_compiler: Optional[FilterCompiler] = None,
        strict_page_tokens: bool = False,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.db = db
        options = dict(
            codec=codec,
            filter_compiler=filter_compiler or FilterCompiler(),
            strict_page_tokens=strict_page_tokens,
            default_page_size=default_page_size,
        )
        self.projects: EntityStore[Project] = EntityStore(db, PROJECT_KIND, **options)
        self.notes: EntityStore[Note] = EntityStore(db, NOTE_KIND, **options)
        self.occurrences: EntityStore[Occurrence] = EntityStore(db, OCCURRENCE_KIND, **options)

    # ==================== Projects ====================

    def create_project(self, project_id: str, *, ctx: Optional[OperationContext] = None) -> Project:
        return self.projects.create(None, project_id, ctx=ctx)

    def get_project(self, project_id: str, *, ctx: Optional[OperationContext] = None) -> Project:
        return self.projects.get(None, project_id, ctx=ctx)

    def delete_project(self, project_id: str, *, ctx: Optional[OperationContext] = None) -> None:
        self.projects.delete(None, project_id, ctx=ctx)

    def list_projects(
        self,
        filter_expression: str = "",
        page_token: str = "",
        page_size: Optional[int] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> ListPage:
        return self.projects.list(None, filter_expression, page_token, page_size, ctx=ctx)

    # ==================== Notes ====================

    def create_note(
        self, project_id: str, note_id: str, note: Note, *, ctx: Optional[OperationContext] = None
    ) -> Note:
        return self.notes.create(project_id, note_id, note, ctx=ctx)

    def batch_create_notes(
        self, project_id: str, notes: Mapping[str, Note], *, ctx: Optional[OperationContext] = None
    ) -> BatchResult:
        """Create notes keyed by note id; see EntityStore.batch_create."""
        return self.notes.batch_create(project_id, list(notes.items()), ctx=ctx)

    def get_note(self, project_id: str, note_id: str, *, ctx: Optional[OperationContext] = None) -> Note:
        return self.notes.get(project_id, note_id, ctx=ctx)

    def update_note(
        self,
        project_id: str,
        note_id: str,
        note: Note,
        field_mask: Optional[List[str]] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> Note:
        return self.notes.update(project_id, note_id, note, field_mask, ctx=ctx)

    def delete_note(self, project_id: str, note_id: str, *, ctx: Optional[OperationContext] = None) -> None:
        self.notes.delete(project_id, note_id, ctx=ctx)

    def list_notes(
        self,
        project_id: str,
        filter_expression: str = "",
        page_token: str = "",
        page_size: Optional[int] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> ListPage:
        return self.notes.list(project_id, filter_expression, page_token, page_size, ctx=ctx)

    # ==================== Occurrences ====================

    def create_occurrence(
        self, project_id: str, occurrence: Occurrence, *, ctx: Optional[OperationContext] = None
    ) -> Occurrence:
        return self.occurrences.create(project_id, None, occurrence, ctx=ctx)

    def batch_create_occurrences(
        self, project_id: str, occurrences: Sequence[Occurrence], *, ctx: Optional[OperationContext] = None
    ) -> BatchResult:
        return self.occurrences.batch_create(project_id, [(None, o) for o in occurrences], ctx=ctx)

    def get_occurrence(
        self, project_id: str, occurrence_id: str, *, ctx: Optional[OperationContext] = None
    ) -> Occurrence:
        return self.occurrences.get(project_id, occurrence_id, ctx=ctx)

    def update_occurrence(
        self,
        project_id: str,
        occurrence_id: str,
        occurrence: Occurrence,
        field_mask: Optional[List[str]] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> Occurrence:
        return self.occurrences.update(project_id, occurrence_id, occurrence, field_mask, ctx=ctx)

    def delete_occurrence(
        self, project_id: str, occurrence_id: str, *, ctx: Optional[OperationContext] = None
    ) -> None:
        self.occurrences.delete(project_id, occurrence_id, ctx=ctx)

    def list_occurrences(
        self,
        project_id: str,
        filter_expression: str = "",
        page_token: str = "",
        page_size: Optional[int] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> ListPage:
        return self.occurrences.list(project_id, filter_expression, page_token, page_size, ctx=ctx)

    # ==================== Derived lookups ====================

    def get_occurrence_note(
        self, project_id: str, occurrence_id: str, *, ctx: Optional[OperationContext] = None
    ) -> Note:
        """
        Resolve the note an occurrence refers to.

        Raises:
            NotFound: If the occurrence or its note does not exist
            InvalidArgument: If the occurrence's note_name is unparsable
        """
        occurrence = self.get_occurrence(project_id, occurrence_id, ctx=ctx)
        try:
            note_project_id, note_id = names.parse_note(occurrence.note_name)
        except InvalidArgument:
            logger.warning(f"Error parsing note name {occurrence.note_name!r} on {occurrence.name}")
            raise
        note = self.get_note(note_project_id, note_id, ctx=ctx)
        note.name = names.format_note(note_project_id, note_id)
        return note

    def list_note_occurrences(
        self,
        project_id: str,
        note_id: str,
        filter_expression: str = "",
        page_token: str = "",
        page_size: Optional[int] = None,
        *,
        ctx: Optional[OperationContext] = None,
    ) -> ListPage:
        """
        List occurrences, in any project, that reference ``projects/{project_id}/notes/{note_id}``.

        Raises:
            NotFound: If the note does not exist
        """
        self.get_note(project_id, note_id, ctx=ctx)
        return self.occurrences.list(
            None,
            filter_expression,
            page_token,
            page_size,
            where={"note_project_id": project_id, "note_id": note_id},
            ctx=ctx,
        )
