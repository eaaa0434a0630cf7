"""Tests for routinely/fileio.py."""

import pytest

from routinely.fileio import read_json, read_yaml, replace_file, write_json_atomic, write_yaml_atomic


def test_missing_files_read_empty(tmp_path):
    assert read_json(tmp_path / "nope.json") == {}
    assert read_yaml(tmp_path / "nope.yaml") == {}


def test_yaml_non_mapping_reads_empty(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    assert read_yaml(p) == {}


def test_json_non_object_rejected(tmp_path):
    p = tmp_path / "list.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        read_json(p)


def test_writes_create_parents(tmp_path):
    write_json_atomic(tmp_path / "a" / "b.json", {"k": [1]})
    write_yaml_atomic(tmp_path / "c" / "d.yaml", {"k": "v"})
    assert read_json(tmp_path / "a" / "b.json") == {"k": [1]}
    assert read_yaml(tmp_path / "c" / "d.yaml") == {"k": "v"}


def test_replace_leaves_no_temp_files(tmp_path):
    target = tmp_path / "out.txt"
    replace_file(target, "one")
    replace_file(target, "two")
    assert target.read_text(encoding="utf-8") == "two"
    assert [p.name for p in tmp_path.iterdir()] == ["out.txt"]
