"""Tests for project manifest management."""
import io
import json
import shutil
import tempfile
import zipfile
from pathlib import Path

import pytest

from inkwell.errors import ConflictError, NotFoundError, ParseError, ValidationError
from inkwell.storage.manifest import ProjectManager, read_manifest


def make_archive(files):
    """Build zip bytes from a {name: text} mapping."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as archive:
        for name, text in files.items():
            archive.writestr(name, text)
    return buffer.getvalue()


class TestCreateProject:
    """Test project creation."""

    def test_creates_layout(self, manager, projects_root):
        result = manager.create_project({'name': 'Demo', 'description': 'A test', 'genre': 'fantasy'})

        assert result.path == projects_root / "Demo"
        assert (result.path / "chapters").is_dir()
        assert (result.path / "assets").is_dir()
        assert result.git_initialized is False

        data = json.loads((result.path / "project.json").read_text(encoding='utf-8'))
        assert data['name'] == 'Demo'
        assert data['description'] == 'A test'
        assert data['chapters'] == []
        assert data['characters'] == []
        assert data['settings'] == {'wordGoal': 0, 'style': 'default'}
        assert data['createdAt'] == data['updatedAt']

    def test_create_then_list(self, manager):
        manager.create_project({'name': 'Demo'})
        summaries = manager.list_projects()

        assert [s.title for s in summaries] == ['Demo']
        assert summaries[0].word_count == 0

    def test_existing_name_conflicts(self, manager, demo_project):
        with pytest.raises(ConflictError):
            manager.create_project({'name': 'Demo'})

    @pytest.mark.parametrize("name", ["", "   ", None, "a/b", "..", "a\\b"])
    def test_invalid_names_rejected(self, manager, name):
        with pytest.raises(ValidationError):
            manager.create_project({'name': name})

    def test_invalid_word_goal_rejected(self, manager):
        with pytest.raises(ValidationError):
            manager.create_project({'name': 'Demo', 'wordGoal': 'lots'})

    def test_git_failure_keeps_project(self, manager, monkeypatch):
        monkeypatch.setattr(ProjectManager, 'enable_git', lambda self, path, message="": False)
        result = manager.create_project({'name': 'Demo', 'use_git': True})

        assert result.path.is_dir()
        assert result.git_initialized is False
        assert result.git_error
        assert read_manifest(result.path).git_enabled is False


class TestLoadProject:
    """Test project loading."""

    def test_missing_project(self, manager, projects_root):
        with pytest.raises(NotFoundError):
            manager.load_project(projects_root / "nope")

    def test_corrupt_manifest(self, manager, demo_project):
        (demo_project / "project.json").write_text("{broken", encoding='utf-8')
        with pytest.raises(ParseError):
            manager.load_project(demo_project)

    def test_orders_by_manifest_then_created(self, manager, chapters, demo_project):
        chapters.save_chapter(demo_project, "b", "Second", "two")
        chapters.save_chapter(demo_project, "a", "First", "one")

        # An unlisted chapter written by hand sorts after the listed ones
        unlisted = demo_project / "chapters" / "0-extra"
        unlisted.mkdir()
        (unlisted / "metadata.json").write_text(json.dumps({
            'id': '0-extra', 'title': 'Extra', 'wordCount': 0,
            'createdAt': '2000-01-01T00:00:00.000Z', 'lastModified': '2000-01-01T00:00:00.000Z'
        }))

        project = manager.load_project(demo_project)
        assert [c.id for c in project.chapters] == ["b", "a", "0-extra"]
        assert project.chapters[2].content == ""

    def test_skips_broken_chapters_and_stale_entries(self, manager, chapters, demo_project):
        chapters.save_chapter(demo_project, "good", "Good", "fine words")
        chapters.save_chapter(demo_project, "gone", "Gone", "x")
        (demo_project / "chapters" / "broken").mkdir()
        (demo_project / "chapters" / "broken" / "metadata.json").write_text("nope")
        # Removing the directory by hand leaves a stale manifest entry
        shutil.rmtree(demo_project / "chapters" / "gone")

        project = manager.load_project(demo_project)
        assert [c.id for c in project.chapters] == ["good"]
        assert [e.id for e in project.manifest.chapters] == ["good"]
        # The manifest on disk is not repaired by loading
        assert [e.id for e in read_manifest(demo_project).chapters] == ["good", "gone"]

    def test_skips_chapter_with_undecodable_content(self, manager, chapters, demo_project):
        chapters.save_chapter(demo_project, "good", "Good", "fine words")
        chapters.save_chapter(demo_project, "bad", "Bad", "x")
        (demo_project / "chapters" / "bad" / "content.md").write_bytes(b"\xff\xfe\xfa bad")

        project = manager.load_project(demo_project)

        assert [c.id for c in project.chapters] == ["good"]

    def test_word_count_is_sum_of_chapters(self, manager, chapters, demo_project):
        chapters.save_chapter(demo_project, "one", "One", "a b c")
        chapters.save_chapter(demo_project, "two", "Two", "第一章")
        assert manager.load_project(demo_project).word_count == 6

    def test_unknown_manifest_keys_survive_rewrite(self, manager, chapters, demo_project):
        data = json.loads((demo_project / "project.json").read_text(encoding='utf-8'))
        data['customField'] = {'keep': True}
        (demo_project / "project.json").write_text(json.dumps(data), encoding='utf-8')

        chapters.save_chapter(demo_project, "one", "One", "text")
        assert read_manifest(demo_project).to_json()['customField'] == {'keep': True}


class TestSaveProjectMetadata:
    """Test manifest edits."""

    def test_updates_fields_and_timestamp(self, manager, demo_project):
        before = read_manifest(demo_project)
        updated = manager.save_project_metadata(demo_project, {
            'description': 'New', 'settings': {'wordGoal': 50000}
        })

        assert updated.description == 'New'
        assert updated.settings.word_goal == 50000
        assert updated.settings.style == 'default'
        assert updated.updated_at >= before.updated_at
        assert read_manifest(demo_project).description == 'New'

    def test_rejects_non_editable_fields(self, manager, demo_project):
        with pytest.raises(ValidationError):
            manager.save_project_metadata(demo_project, {'chapters': []})


class TestListProjects:
    """Test project listing."""

    def test_corrupted_project_is_skipped(self, manager, projects_root):
        manager.create_project({'name': 'Good'})
        broken = projects_root / "Broken"
        broken.mkdir()
        (broken / "project.json").write_text("{{{", encoding='utf-8')
        (projects_root / "NoManifest").mkdir()

        assert [s.title for s in manager.list_projects()] == ['Good']

    def test_undecodable_chapter_does_not_break_listing(self, manager, projects_root):
        manager.create_project({'name': 'Good'})
        bad = manager.create_project({'name': 'Bad'}).path
        (bad / "chapters" / "x").mkdir()
        (bad / "chapters" / "x" / "content.md").write_bytes(b"\xff\xfe\xfa bad")

        summaries = manager.list_projects()

        assert sorted(s.title for s in summaries) == ['Bad', 'Good']
        assert all(s.word_count == 0 for s in summaries)

    def test_sorted_by_last_modified(self, manager, chapters):
        older = manager.create_project({'name': 'Old'}).path
        data = json.loads((older / "project.json").read_text(encoding='utf-8'))
        data['updatedAt'] = '2000-01-01T00:00:00.000Z'
        (older / "project.json").write_text(json.dumps(data), encoding='utf-8')
        newer = manager.create_project({'name': 'New'}).path
        chapters.save_chapter(newer, "c1", "Chapter", "words here")

        summaries = manager.list_projects()
        assert [s.title for s in summaries] == ['New', 'Old']
        assert summaries[0].word_count == 2
        assert summaries[0].directory_name == 'New'


class TestDeleteProject:
    """Test project deletion."""

    def test_delete_is_idempotent(self, manager, demo_project):
        manager.delete_project(demo_project)
        assert 'Demo' not in [s.title for s in manager.list_projects()]
        manager.delete_project(demo_project)


class TestImportExport:
    """Test archive import and export."""

    def test_import_collision_renames(self, manager, projects_root):
        archive = make_archive({
            'project.json': json.dumps({'name': 'Novel', 'createdAt': '2001-01-01T00:00:00Z'}),
            'chapters/c1/metadata.json': json.dumps({'id': 'c1', 'title': 'One'}),
            'chapters/c1/content.md': 'hello',
        })

        first = manager.import_project(archive)
        second = manager.import_project(archive)

        assert first == projects_root / "Novel"
        assert second == projects_root / "Novel_1"
        assert read_manifest(second).name == 'Novel'
        assert read_manifest(first).created_at != '2001-01-01T00:00:00Z'
        assert manager.load_project(second).chapters[0].content == 'hello'

    def test_import_nested_root(self, manager, projects_root):
        archive = make_archive({'MyBook/project.json': json.dumps({'name': 'MyBook'})})
        assert manager.import_project(archive) == projects_root / "MyBook"

    def test_import_without_manifest(self, manager):
        with pytest.raises(NotFoundError):
            manager.import_project(make_archive({'readme.txt': 'hi'}))

    def test_import_rejects_escaping_members(self, manager):
        archive = make_archive({'../evil/project.json': json.dumps({'name': 'Evil'})})
        with pytest.raises(ValidationError):
            manager.import_project(archive)

    def test_import_bad_archive(self, manager):
        with pytest.raises(ParseError):
            manager.import_project(b"not a zip")

    def test_import_cleans_temp_dir(self, manager, temp_dir, monkeypatch):
        created = []
        real_mkdtemp = tempfile.mkdtemp

        def tracking_mkdtemp(*args, **kwargs):
            path = real_mkdtemp(*args, **kwargs)
            created.append(path)
            return path

        monkeypatch.setattr(tempfile, 'mkdtemp', tracking_mkdtemp)
        with pytest.raises(NotFoundError):
            manager.import_project(make_archive({'readme.txt': 'hi'}))

        assert created
        assert not Path(created[0]).exists()

    def test_export_archive_round_trip(self, manager, chapters, demo_project, temp_dir, projects_root):
        chapters.save_chapter(demo_project, "c1", "One", "exported words")
        archive = manager.export_archive(demo_project, temp_dir / "backups")

        assert archive.suffix == ".zip"
        assert archive.name.startswith("Demo-")

        imported = manager.import_project(archive)
        assert imported == projects_root / "Demo_1"
        assert manager.load_project(imported).chapters[0].content == "exported words"
