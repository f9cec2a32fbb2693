"""End-to-end sync between two manifold homes sharing a bare git remote."""

import json

import pytest
from typer.testing import CliRunner

from manifold_cli.cli import app
from manifold_cli.collaboration.git_ops import git_available, run_git

pytestmark = [
    pytest.mark.git,
    pytest.mark.skipif(not git_available(), reason="git executable not available"),
]

runner = CliRunner()

SPEC_ID = "brave-falcon-auth"


class User:
    """Runs CLI commands with MANIFOLD_HOME pointed at one user's home."""

    def __init__(self, home, monkeypatch):
        self.home = home
        self.monkeypatch = monkeypatch

    def run(self, *args, input=None):
        self.monkeypatch.setenv("MANIFOLD_HOME", str(self.home))
        return runner.invoke(app, list(args), input=input)

    def ok(self, *args, input=None):
        result = self.run(*args, input=input)
        assert result.exit_code == 0, result.output
        return result

    def rename(self, name):
        self.ok("patch", SPEC_ID, "--inline", json.dumps([{"op": "replace", "path": "/name", "value": name}]))

    def spec(self):
        return json.loads(self.ok("show", SPEC_ID, "--json").stdout)


@pytest.fixture
def remote_url(tmp_path):
    bare = tmp_path / "remote.git"
    run_git(["init", "--bare", str(bare)], cwd=tmp_path)
    return str(bare)


@pytest.fixture
def alice(tmp_path, monkeypatch, remote_url):
    user = User(tmp_path / "alice", monkeypatch)
    user.ok("init")
    user.ok("sync", "init", "--remote", remote_url)
    return user


@pytest.fixture
def bob(tmp_path, monkeypatch, remote_url):
    user = User(tmp_path / "bob", monkeypatch)
    user.ok("init")
    user.ok("sync", "init", "--remote", remote_url)
    return user


def test_sync_init_saves_remote(alice, remote_url):
    assert f'remote = "{remote_url}"' in (alice.home / "config.toml").read_text(encoding="utf-8")


def test_pull_from_empty_remote(bob):
    result = bob.ok("sync", "pull")
    assert "Remote has no specs yet" in result.output


def test_push_pull_and_resolve(alice, bob):
    alice.ok("new", "Authentication", "--project", "auth", "--id", SPEC_ID)
    pushed = alice.ok("sync", "push")
    assert "Pushed 1 spec(s)" in pushed.output

    # Bob imports the spec
    bob.ok("sync", "pull")
    assert bob.spec()["name"] == "Authentication"

    # Both rename it
    alice.rename("Alice name")
    alice.ok("sync", "push")
    bob.rename("Bob name")

    refused = bob.run("sync", "push")
    assert refused.exit_code == 1
    assert "not merged locally" in refused.output

    conflicted = bob.run("sync", "pull")
    assert conflicted.exit_code == 1
    assert "conflict(s) need resolution" in conflicted.output
    (conflict,) = json.loads(bob.ok("conflicts", "list", "--json").stdout)
    assert (conflict["local_value"], conflict["remote_value"]) == ("Bob name", "Alice name")

    bob.ok("conflicts", "resolve", conflict["id"], "--strategy", "ours")
    bob.ok("sync", "pull")
    assert bob.spec()["name"] == "Bob name"
    bob.ok("sync", "push")

    # Alice fast-forwards to Bob's resolution
    alice.ok("sync", "pull")
    assert alice.spec()["name"] == "Bob name"
    assert "synced" in alice.ok("sync", "status").output


def test_one_sided_edits_merge(alice, bob, make_task):
    alice.ok("new", "Authentication", "--project", "auth", "--id", SPEC_ID)
    alice.ok("sync", "push")
    bob.ok("sync", "pull")

    alice.ok("patch", SPEC_ID, "--inline", json.dumps([{"op": "add", "path": "/tasks/-", "value": make_task()}]))
    alice.ok("sync", "push")
    bob.rename("Bob name")

    bob.ok("sync", "pull")
    spec = bob.spec()
    assert spec["name"] == "Bob name"
    assert [task["id"] for task in spec["tasks"]] == ["task-1"]

    diff = bob.ok("sync", "diff", SPEC_ID)
    assert "Bob name" in diff.output
