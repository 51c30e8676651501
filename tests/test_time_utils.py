"""Tests for time utilities."""

from datetime import datetime, timezone

from metastore.models import Note
from metastore.utils.time import utc_now_z


def test_utc_now_z_is_parseable_utc():
    result = utc_now_z()

    assert result.endswith("Z"), f"Expected result to end with 'Z', got: {result}"
    assert "+00:00" not in result
    parsed = datetime.fromisoformat(result[:-1] + "+00:00")
    assert parsed.tzinfo == timezone.utc
    assert abs((datetime.now(timezone.utc) - parsed).total_seconds()) < 60


def test_store_timestamps_use_z_suffix(store):
    created = store.create_note("proj", "n1", Note(kind="BUILD"))
    updated = store.update_note("proj", "n1", Note(kind="BUILD"))

    assert created.create_time.endswith("Z")
    assert updated.update_time.endswith("Z")
