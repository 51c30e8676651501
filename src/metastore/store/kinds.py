"""Entity kind descriptors.

Each descriptor tells the generic EntityStore which table holds the kind,
which columns form its key, how names are formatted and whether ids are
generated or supplied by the caller.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel
from sqlalchemy import Table

from metastore import names
from metastore.database.schema import NoteRow, OccurrenceRow, ProjectRow
from metastore.models import Note, Occurrence, Project
from metastore.utils.id_generator import new_occurrence_id


@dataclass(frozen=True)
class EntityKind:
    label: str
    table: Table
    model: type[BaseModel]
    id_column: str
    format_name: Callable[..., str]
    scope_column: Optional[str] = None
    payload_column: Optional[str] = None
    generate_id: Optional[Callable[[], str]] = None  # None: caller supplies the id
    row_values: Optional[Callable[[BaseModel], Dict[str, Any]]] = None  # Extra key columns from the payload

    def name_for(self, scope_key: Optional[str], entity_id: str) -> str:
        if self.scope_column is None:
            return self.format_name(entity_id)
        return self.format_name(scope_key, entity_id)


def _occurrence_note_columns(occurrence: Occurrence) -> Dict[str, Any]:
    """Split the note reference into indexed columns; InvalidArgument if unparsable."""
    note_project_id, note_id = names.parse_note(occurrence.note_name)
    return {"note_project_id": note_project_id, "note_id": note_id}


PROJECT_KIND = EntityKind(
    label="Project",
    table=ProjectRow.__table__,
    model=Project,
    id_column="project_id",
    format_name=names.format_project,
)

NOTE_KIND = EntityKind(
    label="Note",
    table=NoteRow.__table__,
    model=Note,
    id_column="note_id",
    format_name=names.format_note,
    scope_column="project_id",
    payload_column="data",
)

OCCURRENCE_KIND = EntityKind(
    label="Occurrence",
    table=OccurrenceRow.__table__,
    model=Occurrence,
    id_column="occurrence_id",
    format_name=names.format_occurrence,
    scope_column="project_id",
    payload_column="data",
    generate_id=new_occurrence_id,
    row_values=_occurrence_note_columns,
)
