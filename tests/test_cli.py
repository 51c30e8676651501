"""Tests for the metastore CLI."""

import json

import pytest
from cryptography.fernet import Fernet

from metastore import cli
from metastore.config.loader import load_config
from metastore.models import Note, Occurrence
from metastore.pagination.cursor import generate_pagination_key
from metastore.store.factory import build_store


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.setenv("METASTORE_PAGINATION_KEY", generate_pagination_key())
    path = tmp_path / "metastore.config.yaml"
    path.write_text(f"database:\n  url: sqlite:///{tmp_path / 'cli.db'}\n", encoding="utf-8")
    return path


@pytest.fixture
def seeded(config_path):
    store = build_store(load_config(config_path), create_tables=True)
    try:
        store.create_project("vendor")
        for i in range(1, 4):
            store.create_note("vendor", f"CVE-{i}", Note(kind="VULNERABILITY", short_description=f"cve {i}"))
        store.create_occurrence("app", Occurrence(note_name="projects/vendor/notes/CVE-1"))
        store.create_occurrence("web", Occurrence(note_name="projects/vendor/notes/CVE-1"))
        store.create_occurrence("app", Occurrence(note_name="projects/vendor/notes/CVE-2"))
    finally:
        store.db.dispose()
    return config_path


def _run(capsys, *argv):
    exit_code = cli.main(list(argv))
    return exit_code, capsys.readouterr().out


def test_keygen_prints_valid_key(capsys):
    exit_code, out = _run(capsys, "keygen")

    assert exit_code == 0
    Fernet(out.strip())


def test_no_command_prints_help(capsys):
    exit_code, out = _run(capsys)

    assert exit_code == 0
    assert "usage:" in out


def test_init_db_creates_tables(config_path, capsys, tmp_path):
    exit_code, out = _run(capsys, "--config", str(config_path), "init-db")

    assert exit_code == 0
    assert "Tables ready" in out
    assert (tmp_path / "cli.db").exists()


def test_notes_list_pages_as_json(seeded, capsys):
    exit_code, out = _run(capsys, "--config", str(seeded), "notes", "list", "--project", "vendor", "--page-size", "2")
    first = json.loads(out)

    assert exit_code == 0
    assert [n["name"] for n in first["items"]] == ["projects/vendor/notes/CVE-1", "projects/vendor/notes/CVE-2"]
    assert first["next_page_token"]

    _, out = _run(
        capsys,
        "--config", str(seeded),
        "notes", "list", "--project", "vendor",
        "--page-size", "2", "--page-token", first["next_page_token"],
    )
    second = json.loads(out)
    assert [n["name"] for n in second["items"]] == ["projects/vendor/notes/CVE-3"]
    assert second["next_page_token"] == ""


def test_notes_list_with_filter(seeded, capsys):
    _, out = _run(
        capsys, "--config", str(seeded), "notes", "list", "--project", "vendor", "--filter", 'short_description = "cve 2"'
    )

    assert [n["name"] for n in json.loads(out)["items"]] == ["projects/vendor/notes/CVE-2"]


def test_projects_list(seeded, capsys):
    _, out = _run(capsys, "--config", str(seeded), "projects", "list")

    assert json.loads(out) == {"items": [{"name": "projects/vendor"}], "next_page_token": ""}


def test_occurrences_list_by_project_and_by_note(seeded, capsys):
    _, out = _run(capsys, "--config", str(seeded), "occurrences", "list", "--project", "app")
    by_project = json.loads(out)["items"]
    assert len(by_project) == 2

    _, out = _run(capsys, "--config", str(seeded), "occurrences", "list", "--project", "vendor", "--note", "CVE-1")
    by_note = json.loads(out)["items"]
    assert sorted(o["name"].split("/")[1] for o in by_note) == ["app", "web"]


def test_store_errors_exit_non_zero(seeded, capsys):
    exit_code, out = _run(capsys, "--config", str(seeded), "occurrences", "list", "--project", "vendor", "--note", "nope")

    assert exit_code == 1
    assert "[NOT_FOUND]" in out


def test_bad_filter_exits_non_zero(seeded, capsys):
    exit_code, out = _run(capsys, "--config", str(seeded), "notes", "list", "--project", "vendor", "--filter", "kind =")

    assert exit_code == 1
    assert "[INVALID_ARGUMENT]" in out


def test_missing_explicit_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        cli.main(["--config", str(tmp_path / "nope.yaml"), "projects", "list"])
