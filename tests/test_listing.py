"""Tests for paginated listing."""

import pytest

from metastore.errors import InvalidArgument
from metastore.models import Note, Occurrence
from metastore.pagination.cursor import CursorCodec, generate_pagination_key
from metastore.store.metadata_store import MetadataStore


def _seed(store, project_id, count, start=1):
    for i in range(start, start + count):
        store.create_note(project_id, f"n{i}", Note(short_description=f"note {i}", kind="BUILD", rank=i))


def _drain(list_page, page_size):
    pages = []
    token = ""
    while True:
        page = list_page(token, page_size)
        pages.append(page)
        token = page.next_page_token
        if not token:
            return pages


def test_five_rows_page_size_two_yields_three_pages(store):
    _seed(store, "proj", 5)

    pages = _drain(lambda token, size: store.list_notes("proj", page_token=token, page_size=size), 2)

    assert [[n.name.rsplit("/", 1)[-1] for n in p.items] for p in pages] == [
        ["n1", "n2"],
        ["n3", "n4"],
        ["n5"],
    ]
    assert pages[0].next_page_token
    assert pages[1].next_page_token
    assert pages[2].next_page_token == ""


def test_exact_multiple_ends_without_empty_trailing_page(store):
    _seed(store, "proj", 4)

    pages = _drain(lambda token, size: store.list_notes("proj", page_token=token, page_size=size), 2)

    assert [len(p.items) for p in pages] == [2, 2]


def test_interleaved_scopes_page_only_their_own_rows(store):
    for i in range(1, 4):
        store.create_note("a", f"a{i}", Note(kind="BUILD"))
        store.create_note("b", f"b{i}", Note(kind="BUILD"))

    pages = _drain(lambda token, size: store.list_notes("a", page_token=token, page_size=size), 2)

    assert [[n.name for n in p.items] for p in pages] == [
        ["projects/a/notes/a1", "projects/a/notes/a2"],
        ["projects/a/notes/a3"],
    ]


def test_empty_scope_returns_empty_page(store):
    _seed(store, "other", 2)

    page = store.list_notes("empty")

    assert page.items == []
    assert page.next_page_token == ""


def test_non_positive_page_size_uses_default(db, codec):
    store = MetadataStore(db, codec, default_page_size=3)
    _seed(store, "proj", 4)

    page = store.list_notes("proj", page_size=0)

    assert len(page.items) == 3
    assert page.next_page_token


def test_invalid_token_restarts_listing(store):
    _seed(store, "proj", 3)

    page = store.list_notes("proj", page_token="not-a-token", page_size=10)

    assert len(page.items) == 3


def test_foreign_key_token_restarts_listing(store):
    _seed(store, "proj", 3)
    foreign = CursorCodec(generate_pagination_key()).encode(2)

    page = store.list_notes("proj", page_token=foreign, page_size=10)

    assert len(page.items) == 3


def test_strict_tokens_reject_invalid_token(db, codec):
    store = MetadataStore(db, codec, strict_page_tokens=True)
    _seed(store, "proj", 3)

    with pytest.raises(InvalidArgument):
        store.list_notes("proj", page_token="not-a-token")

    first = store.list_notes("proj", page_size=2)
    second = store.list_notes("proj", page_token=first.next_page_token, page_size=2)
    assert [n.name for n in second.items] == ["projects/proj/notes/n3"]


def test_listing_survives_deleted_rows(store):
    _seed(store, "proj", 5)
    first = store.list_notes("proj", page_size=2)
    store.delete_note("proj", "n3")

    second = store.list_notes("proj", page_token=first.next_page_token, page_size=2)

    assert [n.name for n in second.items] == ["projects/proj/notes/n4", "projects/proj/notes/n5"]
    assert second.next_page_token == ""


def test_filter_narrows_listing(store):
    store.create_note("proj", "v1", Note(kind="VULNERABILITY", short_description="a"))
    store.create_note("proj", "b1", Note(kind="BUILD", short_description="b"))
    store.create_note("proj", "v2", Note(kind="VULNERABILITY", short_description="c"))

    page = store.list_notes("proj", filter_expression='kind = "VULNERABILITY"')

    assert [n.name for n in page.items] == ["projects/proj/notes/v1", "projects/proj/notes/v2"]


def test_filter_with_paging_and_numeric_comparison(store):
    _seed(store, "proj", 6)

    first = store.list_notes("proj", filter_expression="rank > 2", page_size=2)
    second = store.list_notes(
        "proj", filter_expression="rank > 2", page_token=first.next_page_token, page_size=2
    )

    assert [n.name.rsplit("/", 1)[-1] for n in first.items] == ["n3", "n4"]
    assert [n.name.rsplit("/", 1)[-1] for n in second.items] == ["n5", "n6"]
    assert second.next_page_token == ""


def test_unparsable_filter_raises_invalid_argument(store):
    with pytest.raises(InvalidArgument):
        store.list_notes("proj", filter_expression="kind = ")


def test_list_occurrences_in_project(store):
    store.create_note("proj", "n1", Note(kind="BUILD"))

    for project_id in ("proj", "other", "proj"):
        store.create_occurrence(project_id, Occurrence(note_name="projects/proj/notes/n1"))

    page = store.list_occurrences("proj")

    assert len(page.items) == 2
    assert all(o.name.startswith("projects/proj/occurrences/") for o in page.items)
