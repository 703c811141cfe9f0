"""
Tests for cache/service.py.

Uses a real TaskService (event loop thread + update worker) over a temporary
vault. Every test stops the service.
"""

import sys
import time
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from tasks_timeline.cache.service import TaskService
from tasks_timeline.models.options import OptionsError, UserOptions
from tasks_timeline.vault.store import LocalVault

NOW = datetime(2024, 5, 10, 12, 0)


def _make_vault(tmp_path: Path) -> Path:
    vault = tmp_path / "vault"
    (vault / "Projects").mkdir(parents=True)
    (vault / "Projects" / "x.md").write_text(
        "- [ ] draft plan 📅 2024-05-01\n- [x] kickoff\n", encoding="utf-8"
    )
    (vault / "inbox.md").write_text("- [ ] triage #inbox\n", encoding="utf-8")
    return vault


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


@pytest.fixture
def vault(tmp_path):
    return _make_vault(tmp_path)


@pytest.fixture
def service(vault):
    svc = TaskService(LocalVault(vault), clock=lambda: NOW)
    svc.start()
    yield svc
    svc.stop()


class TestTaskService:
    def test_refresh_and_queries(self, service):
        batch = service.refresh()
        assert len(batch) == 3
        assert [t.visual for t in service.tasks()][0] == "draft plan"
        assert set(service.files()) == {"Projects/x.md", "inbox.md"}
        assert service.get_task("inbox.md:0:0").visual == "triage"
        assert service.get_task("missing") is None

    def test_refresh_filters_default_to_options(self, service):
        service.update_options({"include_paths": ["Projects"]})
        batch = service.refresh()
        assert {t.path for t in batch} == {"Projects/x.md"}

    def test_refresh_with_options(self, service):
        batch = service.refresh(options={"hide_status_tasks": ["x"]})
        assert [t.visual for t in batch if t.path == "Projects/x.md"] == ["draft plan"]
        assert service.get_options().hide_status_tasks == ["x"]

    def test_invalid_options_raise(self, service):
        with pytest.raises(OptionsError):
            service.update_options({"bogus": 1})
        with pytest.raises(OptionsError):
            service.refresh(options={"forward": "not a bool"})

    def test_initial_options(self, vault):
        svc = TaskService(LocalVault(vault), options=UserOptions(hide_status_tasks=["x"]), clock=lambda: NOW)
        svc.start()
        try:
            assert len(svc.refresh()) == 2
        finally:
            svc.stop()

    def test_enqueue_refresh_picks_up_changes(self, service, vault):
        service.refresh()
        (vault / "new.md").write_text("- [ ] fresh task\n", encoding="utf-8")
        service.enqueue_refresh(vault / "new.md")
        assert _wait_for(lambda: "new.md" in service.files())

    def test_enqueue_refresh_invalidates_changed_document(self, service, vault):
        service.refresh()
        (vault / "inbox.md").write_text("- [ ] triage #inbox\n- [ ] second\n", encoding="utf-8")
        service.enqueue_refresh("inbox.md")
        assert _wait_for(lambda: service.get_task("inbox.md:0:1") is not None)

    def test_status(self, service):
        service.refresh()
        st = service.status()
        assert st["running"] is True
        assert st["tasks_indexed"] == 3
        assert st["last_error"] is None
        assert "vault_root" in st

    def test_not_started(self, vault):
        svc = TaskService(LocalVault(vault))
        with pytest.raises(RuntimeError):
            svc.tasks()
        svc.stop()
