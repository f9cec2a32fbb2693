"""Shared fixtures for manifold tests."""

from __future__ import annotations

import pytest

from manifold_cli.config import ManifoldPaths
from manifold_cli.models import Boundary, SpecData
from manifold_cli.storage.files import FileSpecStore
from manifold_cli.storage.memory import InMemorySpecStore


@pytest.fixture(autouse=True)
def patch_home(tmp_path, monkeypatch):
    """Point HOME and MANIFOLD_HOME at a temporary directory for every test.

    Nothing a test does (file store, config, event logs, sync repository)
    may touch the real ~/.manifold.
    """
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("MANIFOLD_HOME", str(tmp_path / ".manifold"))
    monkeypatch.delenv("MANIFOLD_LOG_LEVEL", raising=False)
    return tmp_path


def requirement_data(req_id: str = "req-1", shall: str = "The system SHALL authenticate users", **extra):
    data = {
        "id": req_id,
        "capability": "auth",
        "title": f"Requirement {req_id}",
        "shall": shall,
        "priority": "must",
        "tags": [],
        "scenarios": [],
    }
    data.update(extra)
    return data


def scenario_data(sc_id: str = "sc-1", **extra):
    data = {
        "id": sc_id,
        "name": "Valid login",
        "given": ["a registered user"],
        "when": "they log in with valid credentials",
        "then": ["a session is created"],
        "edge_cases": [],
    }
    data.update(extra)
    return data


def task_data(task_id: str = "task-1", requirement_ids=("req-1",), **extra):
    data = {
        "id": task_id,
        "requirement_ids": list(requirement_ids),
        "title": f"Task {task_id}",
        "description": "Implement it",
        "status": "pending",
        "acceptance": ["tests pass"],
    }
    data.update(extra)
    return data


def decision_data(dec_id: str = "dec-1", **extra):
    data = {
        "id": dec_id,
        "title": "Use JWT",
        "context": "Stateless sessions",
        "decision": "Issue signed JWTs",
        "rationale": "Scales horizontally",
        "alternatives_rejected": ["server sessions"],
        "date": "2024-01-15",
    }
    data.update(extra)
    return data


@pytest.fixture
def make_requirement():
    return requirement_data


@pytest.fixture
def make_scenario():
    return scenario_data


@pytest.fixture
def make_task():
    return task_data


@pytest.fixture
def make_decision():
    return decision_data


@pytest.fixture
def spec():
    """Fresh spec at the requirements stage."""
    return SpecData.new("brave-falcon-auth", "auth", "Authentication", Boundary.WORK)


@pytest.fixture
def full_spec(spec):
    """Spec with one requirement (with scenario), decision and traced task."""
    data = spec.to_dict()
    data["requirements"] = [requirement_data(scenarios=[scenario_data()])]
    data["decisions"] = [decision_data()]
    data["tasks"] = [task_data()]
    return SpecData.from_dict(data)


@pytest.fixture
def memory_store():
    return InMemorySpecStore()


@pytest.fixture
def manifold_paths(patch_home):
    return ManifoldPaths(patch_home / ".manifold")


@pytest.fixture
def file_store(manifold_paths):
    return FileSpecStore(manifold_paths)
