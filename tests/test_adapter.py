"""
Tests for cache/adapter.py.

Uses a real LocalVault backed by a temporary vault on disk and a fixed clock.

Covers:
- end-to-end refresh: single task, hidden status, tag include, path include
- path filters match whole segments; file tag filters
- duplicate concurrent refreshes skip documents already in flight
- document and refresh-level failures
- table merge: identity replacement, removed tasks, deleted documents
- sorted view, comparator failure, callbacks
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

import tasks_timeline.cache.adapter as adapter_module
from tasks_timeline.cache.adapter import TaskAdapter, is_parent
from tasks_timeline.cache.entries import DocumentTaskCache
from tasks_timeline.vault.store import LocalVault

NOW = datetime(2024, 5, 10, 12, 0)


def _clock() -> datetime:
    return NOW


# ---------------------------------------------------------------------------
# Helpers to build a minimal vault on disk
# ---------------------------------------------------------------------------

def _write(vault: Path, rel: str, content: str) -> None:
    path = vault / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _make_vault(tmp_path: Path) -> Path:
    vault = tmp_path / "vault"
    vault.mkdir()
    _write(vault, "note.md", "- [ ] buy milk #todo\n")
    _write(
        vault,
        "Projects/x.md",
        "---\ntags: [work]\n---\n# Roadmap\n\n"
        "- [ ] draft plan 📅 2024-05-01\n"
        "- [x] kickoff ✅ 2024-04-01\n"
        "- [ ] review ^rev1\n",
    )
    _write(vault, "Archive/x.md", "- [ ] old thing\n")
    _write(vault, "Daily/2024-05-09.md", "- [ ] call mom\n- plain note\n")
    _write(vault, ".obsidian/ignored.md", "- [ ] not scanned\n")
    return vault


def _adapter(vault: Path, **kwargs) -> TaskAdapter:
    return TaskAdapter(LocalVault(vault, {".obsidian"}), clock=_clock, **kwargs)


def _refresh(adapter: TaskAdapter, **kwargs):
    return asyncio.run(adapter.refresh(**kwargs))


class TestIsParent:
    @pytest.mark.parametrize(
        "parent,path,expected",
        [
            ("Projects", "Projects/x.md", True),
            ("Projects/", "Projects/sub/x.md", True),
            ("Projects/x.md", "Projects/x.md", True),
            ("note", "note/a.md", True),
            ("note", "note2/a.md", False),
            ("note", "note.md", False),
            ("", "anything.md", False),
        ],
    )
    def test_segments(self, parent, path, expected):
        assert is_parent(parent, path) is expected


# ---------------------------------------------------------------------------
# Refresh scenarios
# ---------------------------------------------------------------------------

class TestRefresh:
    def test_single_task_document(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        batch = _refresh(adapter, include_paths=["note.md"])
        assert len(batch) == 1
        task = batch[0]
        assert task.id == "note.md:0:0"
        assert task.status_marker == " "
        assert task.tags == ["#todo"]
        assert task.visual == "buy milk"
        assert task.checked is True
        assert task.completed is False
        assert task.fully_completed is False
        assert task.status == "unplanned"

    def test_hidden_status(self, tmp_path):
        vault = tmp_path / "vault"
        _write(vault, "n.md", "- [x] done thing\n- [ ] open thing\n")
        adapter = _adapter(vault)
        batch = _refresh(adapter, options={"hide_status_tasks": ["x"]})
        assert [t.visual for t in batch] == ["open thing"]

    def test_tag_include(self, tmp_path):
        vault = tmp_path / "vault"
        _write(vault, "n.md", "- [ ] a #work\n- [ ] b #home\n")
        adapter = _adapter(vault)
        batch = _refresh(adapter, options={"use_include_tags": True, "task_include_tags": ["#work"]})
        assert [t.visual for t in batch] == ["a"]

    def test_path_include(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        batch = _refresh(adapter, include_paths=["Projects"])
        assert {t.path for t in batch} == {"Projects/x.md"}
        assert len(batch) == 3

    def test_path_prefix_is_segment_wise(self, tmp_path):
        vault = tmp_path / "vault"
        _write(vault, "note/a.md", "- [ ] in note\n")
        _write(vault, "note2/b.md", "- [ ] in note2\n")
        batch = _refresh(_adapter(vault), include_paths=["note"])
        assert [t.path for t in batch] == ["note/a.md"]

    def test_path_exclude(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        batch = _refresh(adapter, exclude_paths=["Archive", "Daily"])
        assert {t.path for t in batch} == {"note.md", "Projects/x.md"}

    def test_file_tag_filters(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        assert {t.path for t in _refresh(adapter, include_tags=["work"])} == {"Projects/x.md"}
        assert "Projects/x.md" not in {t.path for t in _refresh(adapter, exclude_tags=["#work"])}

    def test_excluded_dirs_not_scanned(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        assert all(not t.path.startswith(".obsidian") for t in _refresh(adapter))

    def test_block_id_identity_and_section(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        _refresh(adapter)
        task = adapter.get_task("Projects/x.md^rev1")
        assert task is not None
        assert task.visual == "review"
        assert task.section.subpath == "Roadmap"
        assert task.tags == ["#work"]

    def test_daily_note_task_scheduled(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        batch = _refresh(adapter, include_paths=["Daily"])
        assert len(batch) == 1
        assert batch[0].scheduled == datetime(2024, 5, 9)
        assert batch[0].status == "scheduled"


class TestConcurrency:
    def test_duplicate_concurrent_refresh(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))

        async def scenario():
            return await asyncio.gather(adapter.refresh(), adapter.refresh())

        first, second = asyncio.run(scenario())
        assert len(first) == 6
        assert second == []
        assert len(adapter.tasks) == 6
        assert adapter.registry.documents == {}
        assert adapter.registry.items == {}

    def test_sequential_refreshes_do_not_duplicate(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        _refresh(adapter)
        _refresh(adapter)
        assert len(adapter.tasks) == 6


class TestFailures:
    def test_document_failure_is_isolated(self, tmp_path):
        class _FlakyVault(LocalVault):
            def get_metadata(self, path):
                if path == "Archive/x.md":
                    raise RuntimeError("index broken")
                return super().get_metadata(path)

        adapter = TaskAdapter(_FlakyVault(_make_vault(tmp_path), {".obsidian"}), clock=_clock)
        batch = _refresh(adapter)
        assert "Archive/x.md" not in {t.path for t in batch}
        assert len(batch) == 5
        assert adapter.last_errors == ["Archive/x.md: index broken"]
        assert adapter.last_error is None
        assert adapter.registry.documents == {}

    def test_escaping_document_error_recorded(self, tmp_path, monkeypatch):
        class _Exploding(DocumentTaskCache):
            async def tasks(self):
                if self.path == "note.md":
                    self.registry.release_document(self)
                    raise RuntimeError("boom")
                return await super().tasks()

        monkeypatch.setattr(adapter_module, "DocumentTaskCache", _Exploding)
        adapter = _adapter(_make_vault(tmp_path))
        batch = _refresh(adapter)
        assert "note.md" not in {t.path for t in batch}
        assert len(batch) == 5
        assert adapter.last_errors == ["note.md: boom"]
        assert adapter.last_error is None

    def test_refresh_level_failure_leaves_table(self, tmp_path):
        class _BrokenVault(LocalVault):
            broken = False

            def list_documents(self):
                if self.broken:
                    raise OSError("vault unavailable")
                return super().list_documents()

        store = _BrokenVault(_make_vault(tmp_path), {".obsidian"})
        adapter = TaskAdapter(store, clock=_clock)
        _refresh(adapter)
        before = [t.id for t in adapter.tasks]

        store.broken = True
        assert _refresh(adapter) == []
        assert adapter.last_error == "vault unavailable"
        assert [t.id for t in adapter.tasks] == before

    def test_invalid_options_fail_the_refresh(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        assert _refresh(adapter, options={"bogus": True}) == []
        assert adapter.last_error is not None
        assert adapter.tasks == []


class TestTable:
    def test_removed_task_dropped_on_rescan(self, tmp_path):
        vault = _make_vault(tmp_path)
        store = LocalVault(vault, {".obsidian"})
        adapter = TaskAdapter(store, clock=_clock)
        _refresh(adapter)
        _write(vault, "note.md", "nothing left\n")
        store.invalidate("note.md")
        _refresh(adapter)
        assert "note.md" not in adapter.files
        assert len(adapter.tasks) == 5

    def test_deleted_document_dropped(self, tmp_path):
        vault = _make_vault(tmp_path)
        adapter = _adapter(vault)
        _refresh(adapter)
        (vault / "Archive" / "x.md").unlink()
        _refresh(adapter, include_paths=["note.md"])
        assert "Archive/x.md" not in adapter.files

    def test_documents_outside_working_set_persist(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        _refresh(adapter)
        _refresh(adapter, include_paths=["note.md"])
        assert len(adapter.tasks) == 6

    def test_sorted_view(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        _refresh(adapter, include_paths=["Projects"])
        assert [t.visual for t in adapter.tasks] == ["draft plan", "review", "kickoff"]
        assert [t.status for t in adapter.tasks] == ["overdue", "unplanned", "done"]

    def test_files_distinct_in_task_order(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        _refresh(adapter)
        files = adapter.files
        assert len(files) == len(set(files))
        assert files[0] == "Projects/x.md"
        assert set(files) == {"note.md", "Projects/x.md", "Archive/x.md", "Daily/2024-05-09.md"}

    def test_comparator_failure_keeps_table_order(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        _refresh(adapter)

        def boom(a, b):
            raise RuntimeError("nope")

        adapter.options.sort_function = boom
        assert len(adapter.tasks) == 6

    def test_callbacks(self, tmp_path):
        added = []
        finished = []
        adapter = _adapter(_make_vault(tmp_path), on_add=added.append, on_finished=finished.append)
        batch = _refresh(adapter)
        assert len(added) == len(batch) == 6
        assert len(finished) == 1
        assert len(finished[0]) == 6

    def test_failing_callback_does_not_fail_refresh(self, tmp_path):
        def boom(task):
            raise RuntimeError("consumer error")

        adapter = _adapter(_make_vault(tmp_path), on_add=boom)
        assert len(_refresh(adapter)) == 6
        assert adapter.last_error is None

    def test_status(self, tmp_path):
        adapter = _adapter(_make_vault(tmp_path))
        _refresh(adapter)
        st = adapter.status()
        assert st["tasks_indexed"] == 6
        assert st["files_with_tasks"] == 4
        assert st["refresh_count"] == 1
        assert st["pending_documents"] == []
