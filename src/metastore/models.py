"""Pydantic models for projects, notes and occurrences.

The store treats note and occurrence payloads as opaque documents: the declared
fields cover the common attributes, and any extra field a caller supplies is
kept and round-tripped unchanged.
"""

from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from metastore.errors import StoreError


class Project(BaseModel):
    name: str = ""


class RelatedUrl(BaseModel):
    url: str
    label: Optional[str] = None


class Resource(BaseModel):
    uri: str
    name: Optional[str] = None
    content_hash: Optional[dict[str, str]] = None


class Note(BaseModel):
    """A descriptive template that occurrences instantiate."""

    model_config = ConfigDict(extra="allow")

    name: str = ""  # Output only: projects/{project_id}/notes/{note_id}
    short_description: Optional[str] = None
    long_description: Optional[str] = None
    kind: Optional[str] = None
    related_url: list[RelatedUrl] = []
    related_note_names: list[str] = []
    expiration_time: Optional[str] = None
    create_time: Optional[str] = None  # Output only
    update_time: Optional[str] = None  # Output only


class Occurrence(BaseModel):
    """An instantiation of a note against a resource."""

    model_config = ConfigDict(extra="allow")

    name: str = ""  # Output only: projects/{project_id}/occurrences/{uuid}
    note_name: str = ""  # projects/{project_id}/notes/{note_id}
    resource: Optional[Resource] = None
    kind: Optional[str] = None
    remediation: Optional[str] = None
    create_time: Optional[str] = None  # Output only
    update_time: Optional[str] = None  # Output only


T = TypeVar("T")


class ListPage(BaseModel, Generic[T]):
    """One page of a List call.

    ``next_page_token`` is empty when the listing is exhausted.
    """
    items: List[T] = Field(default_factory=list)
    next_page_token: str = ""


class BatchItemResult(BaseModel, Generic[T]):
    """Outcome of one item in a batch create, keyed to its input position."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int
    entity_id: Optional[str] = None
    value: Optional[T] = None
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchResult(BaseModel, Generic[T]):
    """Per-item results of a batch create."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    results: List[BatchItemResult[T]] = Field(default_factory=list)

    @property
    def created(self) -> List[T]:
        """Successfully created entities, in input order."""
        return [r.value for r in self.results if r.ok and r.value is not None]

    @property
    def errors(self) -> List[BatchItemResult[T]]:
        return [r for r in self.results if not r.ok]
