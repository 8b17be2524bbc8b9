"""Tests for storage.py — atomic writes, YAML records, JSON state."""

import json

import pytest

from league_bot.storage import (
    StoreError,
    atomic_write,
    dump_yaml,
    load_yaml,
    read_json,
    read_yaml_dir,
    write_json,
)


def test_atomic_write_creates_parents(tmp_path):
    target = tmp_path / "a" / "b" / "file.txt"

    atomic_write(target, "hello")

    assert target.read_text() == "hello"
    assert list(target.parent.glob("*.tmp")) == []


def test_atomic_write_replaces_existing(tmp_path):
    target = tmp_path / "file.txt"
    target.write_text("old")

    atomic_write(target, "new")

    assert target.read_text() == "new"


def test_atomic_write_wraps_os_errors(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(StoreError):
        atomic_write(blocker / "file.txt", "x")


def test_yaml_keeps_key_order_and_unicode():
    text = dump_yaml({"zeta": 1, "alpha": "🎵"})

    assert text.index("zeta") < text.index("alpha")
    assert "🎵" in text
    assert load_yaml(text) == {"zeta": 1, "alpha": "🎵"}


def test_load_yaml_rejects_non_mapping():
    with pytest.raises(ValueError):
        load_yaml("- a\n- b\n")
    with pytest.raises(ValueError):
        load_yaml("")


def test_read_yaml_dir_missing(tmp_path):
    assert read_yaml_dir(tmp_path / "nope") == ([], [])


def test_read_yaml_dir_reports_corrupt_files(tmp_path):
    (tmp_path / "good.yaml").write_text("id: good\n")
    (tmp_path / "bad.yaml").write_text("id: [oops\n")
    (tmp_path / "list.yaml").write_text("- 1\n")
    (tmp_path / "ignored.txt").write_text("id: nope\n")

    parsed, corrupt = read_yaml_dir(tmp_path)

    assert parsed == [(tmp_path / "good.yaml", {"id": "good"})]
    assert sorted(p.name for p in corrupt) == ["bad.yaml", "list.yaml"]


def test_read_json_missing_returns_default(tmp_path):
    assert read_json(tmp_path / "nope.json", {"a": 1}) == {"a": 1}


def test_write_then_read_json(tmp_path):
    target = tmp_path / "state.json"

    write_json(target, {"guild": {"league_url": None}})

    assert read_json(target, {}) == {"guild": {"league_url": None}}
    assert json.loads(target.read_text()) == {"guild": {"league_url": None}}


def test_read_json_corrupt_raises(tmp_path):
    target = tmp_path / "state.json"
    target.write_text("{not json")

    with pytest.raises(StoreError):
        read_json(target, {})


def test_atomic_write_removes_temp_file_on_failure(tmp_path, monkeypatch):
    def failing_replace(src, dst):
        raise OSError("cross-device link")

    monkeypatch.setattr("league_bot.storage.os.replace", failing_replace)
    target = tmp_path / "file.txt"

    with pytest.raises(StoreError, match="cross-device"):
        atomic_write(target, "x")

    assert not target.exists()
    assert list(tmp_path.glob("*.tmp")) == []
