from sqlalchemy import (
    JSON,
    Column,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, autoincrement=True)  # Row marker, never reused
    project_id = Column(String(255), nullable=False, unique=True)

    __table_args__ = (
        {"sqlite_autoincrement": True},
    )


class NoteRow(Base):
    __tablename__ = "notes"

    id = Column(Integer, primary_key=True, autoincrement=True)  # Row marker, never reused
    project_id = Column(String(255), nullable=False)
    note_id = Column(String(255), nullable=False)
    data = Column(JSON, nullable=False)  # Full Note document

    __table_args__ = (
        UniqueConstraint("project_id", "note_id", name="uq_notes_project_note"),
        {"sqlite_autoincrement": True},
    )


class OccurrenceRow(Base):
    __tablename__ = "occurrences"

    id = Column(Integer, primary_key=True, autoincrement=True)  # Row marker, never reused
    project_id = Column(String(255), nullable=False)
    occurrence_id = Column(String(64), nullable=False)
    note_project_id = Column(String(255), nullable=False)
    note_id = Column(String(255), nullable=False)
    data = Column(JSON, nullable=False)  # Full Occurrence document

    __table_args__ = (
        UniqueConstraint("project_id", "occurrence_id", name="uq_occurrences_project_occurrence"),
        Index("idx_occurrences_note", "note_project_id", "note_id"),
        {"sqlite_autoincrement": True},
    )
