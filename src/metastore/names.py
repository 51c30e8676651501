"""Resource name formatting and parsing.

Names are always derived from key columns:

    projects/{project_id}
    projects/{project_id}/notes/{note_id}
    projects/{project_id}/occurrences/{occurrence_id}
"""

from typing import Tuple

from metastore.errors import InvalidArgument

PROJECTS = "projects"
NOTES = "notes"
OCCURRENCES = "occurrences"


def format_project(project_id: str) -> str:
    return f"{PROJECTS}/{project_id}"


def format_note(project_id: str, note_id: str) -> str:
    return f"{PROJECTS}/{project_id}/{NOTES}/{note_id}"


def format_occurrence(project_id: str, occurrence_id: str) -> str:
    return f"{PROJECTS}/{project_id}/{OCCURRENCES}/{occurrence_id}"


def parse_note(name: str) -> Tuple[str, str]:
    """Return ``(project_id, note_id)`` from ``projects/{project_id}/notes/{note_id}``."""
    parts = (name or "").split("/")
    if len(parts) != 4 or parts[0] != PROJECTS or parts[2] != NOTES:
        raise InvalidArgument(f"Invalid note name: {name!r}")
    project_id, note_id = parts[1], parts[3]
    if not project_id or not note_id:
        raise InvalidArgument(f"Invalid note name: {name!r}")
    return project_id, note_id
