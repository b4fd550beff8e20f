"""Unit tests for data models."""
from datetime import timezone

import pytest

from inkwell.errors import ValidationError
from inkwell.models import Chapter, ChapterEntry, OperationResult, ProjectManifest
from inkwell.models.chapter import new_chapter_id, parse_timestamp, validate_path_segment


class TestProjectManifest:
    """Test ProjectManifest model."""

    def test_defaults(self):
        """Test a manifest built from just a name."""
        manifest = ProjectManifest(name="Book")

        assert manifest.chapters == []
        assert manifest.characters == []
        assert manifest.settings.word_goal == 0
        assert manifest.settings.style == "default"
        assert manifest.schema_version == 1

    def test_unknown_keys_survive(self):
        """Test that keys written by other tools are kept."""
        manifest = ProjectManifest.model_validate({'name': 'Book', 'coverImage': 'cover.png'})

        assert manifest.to_json()['coverImage'] == 'cover.png'

    def test_malformed_entries_dropped(self):
        manifest = ProjectManifest.model_validate({
            'name': 'Book',
            'chapters': [None, {'title': 'no id'}, {'id': 'c1', 'title': 'One'}],
            'characters': 'oops',
            'settings': None,
        })

        assert [entry.id for entry in manifest.chapters] == ['c1']
        assert manifest.characters == []
        assert manifest.settings.style == "default"

    def test_upsert_and_remove(self):
        manifest = ProjectManifest(name="Book")

        assert manifest.upsert_chapter(ChapterEntry(id='c1', title='One')) is True
        assert manifest.upsert_chapter(ChapterEntry(id='c1', title='Uno')) is False
        assert manifest.find_chapter('c1').title == 'Uno'
        assert len(manifest.chapters) == 1

        assert manifest.remove_chapter('c1') is True
        assert manifest.remove_chapter('c1') is False

    def test_camel_case_on_disk(self):
        data = ProjectManifest(name="Book", git_enabled=True).to_json()

        assert data['gitEnabled'] is True
        assert 'createdAt' in data
        assert 'wordGoal' in data['settings']


class TestChapter:
    """Test Chapter model."""

    def test_metadata_excludes_content(self):
        chapter = Chapter(id='c1', title='One', content='Some words here', word_count=3)

        metadata = chapter.metadata()

        assert metadata.to_json()['wordCount'] == 3
        assert 'content' not in metadata.to_json()
        assert chapter.to_json()['content'] == 'Some words here'

    def test_entry_from_metadata(self):
        entry = ChapterEntry.from_metadata(Chapter(id='c1', title='One'))

        assert entry.directory == 'c1'
        assert entry.title == 'One'

    def test_new_ids_are_unique(self):
        ids = {new_chapter_id() for _ in range(50)}

        assert len(ids) == 50
        assert all(validate_path_segment(chapter_id, "id") == chapter_id for chapter_id in ids)

    @pytest.mark.parametrize("value", ["", "  ", ".", "..", "a/b", "a\\b", None, 5])
    def test_unsafe_segments(self, value):
        with pytest.raises(ValidationError):
            validate_path_segment(value, "chapter id")

    def test_parse_timestamp(self):
        parsed = parse_timestamp("2024-01-02T03:04:05.000Z")

        assert parsed.tzinfo is not None
        assert parsed.utcoffset() == timezone.utc.utcoffset(None)
        assert parse_timestamp("garbage") < parsed
        assert parse_timestamp(None) < parsed


class TestOperationResult:
    """Test OperationResult model."""

    def test_ok(self):
        result = OperationResult.ok([ChapterEntry(id='c1')])

        assert result
        assert result.to_json()['data'][0]['id'] == 'c1'

    def test_fail(self):
        result = OperationResult.fail("nope", "not_found")

        assert not result
        assert result.to_json() == {'success': False, 'error': 'nope', 'kind': 'not_found'}
