"""Tests for the filesystem store."""
import json

import pytest

from inkwell.errors import NotFoundError, ParseError
from inkwell.storage import filesystem as fs


class TestJson:
    """Test JSON reading and writing."""

    def test_write_creates_parents_and_keeps_unicode(self, temp_dir):
        path = temp_dir / "a" / "b" / "data.json"
        fs.write_json(path, {"title": "第一章", "n": 1})

        raw = path.read_text(encoding='utf-8')
        assert "第一章" in raw
        assert raw.startswith("{\n  \"title\"")
        assert fs.read_json(path) == {"title": "第一章", "n": 1}

    def test_write_leaves_no_temp_files(self, temp_dir):
        fs.write_json(temp_dir / "data.json", [1, 2, 3])
        assert [p.name for p in temp_dir.iterdir()] == ["data.json"]

    def test_read_missing_raises_not_found(self, temp_dir):
        with pytest.raises(NotFoundError):
            fs.read_json(temp_dir / "missing.json")

    def test_read_invalid_raises_parse_error(self, temp_dir):
        path = temp_dir / "bad.json"
        path.write_text("{not json", encoding='utf-8')
        with pytest.raises(ParseError):
            fs.read_json(path)


class TestText:
    """Test raw text reading and writing."""

    def test_round_trip_is_verbatim(self, temp_dir):
        content = "line one\r\nline two\n\n第二行\n"
        path = temp_dir / "nested" / "content.md"
        fs.write_text(path, content)

        assert path.read_bytes() == content.encode('utf-8')
        assert fs.read_text(path) == content

    def test_empty_content(self, temp_dir):
        path = temp_dir / "content.md"
        fs.write_text(path, "")
        assert fs.read_text(path) == ""

    def test_read_missing_raises_not_found(self, temp_dir):
        with pytest.raises(NotFoundError):
            fs.read_text(temp_dir / "missing.md")

    def test_read_invalid_utf8_raises_parse_error(self, temp_dir):
        path = temp_dir / "bad.md"
        path.write_bytes(b"\xff\xfe\xfa bad")

        with pytest.raises(ParseError):
            fs.read_text(path)


class TestDirectories:
    """Test directory helpers."""

    def test_list_project_directories_creates_root(self, temp_dir):
        root = temp_dir / "projects"
        assert list(fs.list_project_directories(root)) == []
        assert root.is_dir()

    def test_list_project_directories_skips_files_and_rescans(self, temp_dir):
        (temp_dir / "one").mkdir()
        (temp_dir / "notes.txt").write_text("x")
        assert sorted(fs.list_project_directories(temp_dir)) == ["one"]

        (temp_dir / "two").mkdir()
        assert sorted(fs.list_project_directories(temp_dir)) == ["one", "two"]

    def test_list_subdirectories_missing_path(self, temp_dir):
        assert fs.list_subdirectories(temp_dir / "missing") == []

    def test_remove_tree_is_idempotent(self, temp_dir):
        target = temp_dir / "tree"
        (target / "sub").mkdir(parents=True)
        (target / "sub" / "f.txt").write_text("x")

        fs.remove_tree(target)
        assert not target.exists()
        fs.remove_tree(target)

    def test_copy_tree(self, temp_dir):
        source = temp_dir / "src"
        source.mkdir()
        (source / "project.json").write_text(json.dumps({"name": "x"}))

        copied = fs.copy_tree(source, temp_dir / "dst")
        assert (copied / "project.json").read_text() == json.dumps({"name": "x"})
