"""Tests for CLI commands using Click's test runner."""

import json
import os

import pytest
from click.testing import CliRunner

from fieldsync.cli import cli
from fieldsync.storage.sqlite_store import SQLiteStorage

DOC = {
    "version": "1.0",
    "groups": [
        {
            "slug": "specs",
            "title": "Specifications",
            "fields": [{"slug": "material", "type": "text", "title": "Material"}],
            "field_values": [{"field_slug": "material", "entity_id": 42, "value": "Cotton"}],
        },
        {
            "slug": "care",
            "title": "Care",
            "fields": [{"slug": "washing", "type": "select", "title": "Washing"}],
        },
    ],
}

SYNC_DIR = os.path.join("themes", "classic", "fields")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("FIELDSYNC_DB", "FIELDSYNC_SYNC_ENABLED", "FIELDSYNC_AUTO_SYNC",
                 "FIELDSYNC_SYNC_PATH"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project(tmp_path, monkeypatch):
    """A temporary directory with fieldsync initialized."""
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["init"])
    assert result.exit_code == 0, result.output
    return tmp_path


@pytest.fixture
def loaded(project, runner):
    """An initialized project with the two sample groups imported."""
    with open("doc.json", "w") as f:
        json.dump(DOC, f)
    result = runner.invoke(cli, ["import", "doc.json"])
    assert result.exit_code == 0, result.output
    return project


def _store():
    return SQLiteStorage(os.path.join(".fieldsync", "fieldsync.db"))


class TestInit:
    def test_init(self, runner: CliRunner):
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["init", "--theme", "child"])
            assert result.exit_code == 0
            assert "Initialized fieldsync" in result.output
            assert os.path.join("themes", "child", "fields") in result.output
            assert os.path.exists(".fieldsync/config.yaml")
            assert os.path.exists(".fieldsync/.gitignore")
            assert os.path.exists(".fieldsync/fieldsync.db")

    def test_init_twice(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "already initialized" in result.output

    def test_not_initialized(self, runner: CliRunner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 1
        assert "not in a fieldsync project" in result.output


class TestImport:
    def test_import_merge(self, runner: CliRunner, loaded):
        store = _store()
        try:
            assert {g.slug for g in store.find_all_groups()} == {"care", "specs"}
            assert len(store.find_values_by_group(store.find_group_by_slug("specs").id)) == 1
        finally:
            store.close()

    def test_import_json_summary(self, runner: CliRunner, project):
        with open("doc.json", "w") as f:
            json.dump(DOC, f)
        result = runner.invoke(cli, ["--json", "import", "doc.json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["summary"]["created"] == 2
        assert data["summary"]["values_imported"] == 1

    def test_import_replace(self, runner: CliRunner, loaded):
        with open("only.json", "w") as f:
            json.dump({"version": "1.0", "groups": [DOC["groups"][1]]}, f)
        result = runner.invoke(cli, ["import", "only.json", "--mode", "replace"])
        assert result.exit_code == 0
        assert "1 groups imported" in result.output
        store = _store()
        try:
            assert [g.slug for g in store.find_all_groups()] == ["care"]
        finally:
            store.close()

    def test_import_invalid(self, runner: CliRunner, project):
        with open("bad.json", "w") as f:
            json.dump({"groups": [{"slug": "x"}]}, f)
        result = runner.invoke(cli, ["import", "bad.json"])
        assert result.exit_code == 1
        assert "Missing required field: version" in result.output


class TestPushPull:
    def test_status_before_push(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Not in theme" in result.output
        assert "0 synced, 2 to push, 0 to pull" in result.output

    def test_push_and_status(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["push", "specs"])
        assert result.exit_code == 0, result.output
        assert "Pushed specs" in result.output
        assert os.path.exists(os.path.join(SYNC_DIR, "groups", "specs.json"))
        assert os.path.exists(os.path.join(SYNC_DIR, ".htaccess"))

        result = runner.invoke(cli, ["--json", "status", "specs"])
        assert json.loads(result.stdout)["status"] == "synced"

        result = runner.invoke(cli, ["status", "specs"])
        assert "Group is in sync with the JSON file" in result.output

    def test_push_requires_target(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["push"])
        assert result.exit_code == 1

    def test_push_unknown_group(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["push", "nope"])
        assert result.exit_code == 1
        assert "group not found" in result.output

    def test_push_disabled(self, runner: CliRunner, loaded):
        runner.invoke(cli, ["config", "set", "sync-enabled", "false"])
        result = runner.invoke(cli, ["push", "--all"])
        assert result.exit_code == 1
        assert "sync is disabled" in result.output

    def test_pull_all_restores_deleted_group(self, runner: CliRunner, loaded):
        assert runner.invoke(cli, ["push", "--all"]).exit_code == 0
        store = _store()
        try:
            store.delete_group(store.find_group_by_slug("care").id)
        finally:
            store.close()

        result = runner.invoke(cli, ["status"])
        assert "Theme only" in result.output

        result = runner.invoke(cli, ["pull", "--all"])
        assert result.exit_code == 0, result.output
        assert "Pulled 2 group(s), 0 failed" in result.output
        result = runner.invoke(cli, ["status"])
        assert "2 synced" in result.output

    def test_pull_missing_file(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["pull", "specs"])
        assert result.exit_code == 1
        assert "JSON file not found" in result.output


class TestExport:
    def test_export_stdout(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["export"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert {g["slug"] for g in data["groups"]} == {"specs", "care"}

    def test_export_file_round_trip(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["export", "-o", "out.json", "--no-values"])
        assert result.exit_code == 0
        assert "Exported 2 group(s)" in result.output
        result = runner.invoke(cli, ["import", "out.json", "--mode", "replace"])
        assert result.exit_code == 0, result.output
        assert "2 groups imported" in result.output


class TestAutoSync:
    def test_changes_exported_when_enabled(self, runner: CliRunner, loaded):
        snapshot = os.path.join(SYNC_DIR, "fieldsync-config.json")
        assert not os.path.exists(snapshot)
        runner.invoke(cli, ["config", "set", "auto-sync-enabled", "true"])
        result = runner.invoke(cli, ["import", "doc.json"])
        assert result.exit_code == 0
        with open(snapshot) as f:
            assert len(json.load(f)["groups"]) == 2

        result = runner.invoke(cli, ["--json", "autosync", "status"])
        assert json.loads(result.stdout)["status"] == "synced"

    def test_export_and_status(self, runner: CliRunner, loaded):
        result = runner.invoke(cli, ["autosync", "export"])
        assert result.exit_code == 0
        result = runner.invoke(cli, ["autosync", "status"])
        assert "Status: synced" in result.output
        assert "2 group(s)" in result.output

    def test_empty_export_refused(self, runner: CliRunner, loaded):
        runner.invoke(cli, ["autosync", "export"])
        store = _store()
        try:
            for group in store.find_all_groups():
                store.delete_group(group.id)
        finally:
            store.close()
        result = runner.invoke(cli, ["autosync", "export"])
        assert result.exit_code == 1
        assert "database is empty" in result.output

    def test_sync_imports_newer_file(self, runner: CliRunner, loaded):
        runner.invoke(cli, ["autosync", "export"])
        store = _store()
        try:
            for group in store.find_all_groups():
                store.delete_group(group.id)
        finally:
            store.close()
        result = runner.invoke(cli, ["autosync", "sync"])
        assert result.exit_code == 0, result.output
        assert "2 groups imported" in result.output

    def test_sync_nothing(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["autosync", "sync"])
        assert result.exit_code == 1
        assert "Cannot sync" in result.output

    def test_dismiss_without_file(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["autosync", "dismiss"])
        assert result.exit_code == 1


class TestConfig:
    def test_set_get(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["config", "set", "theme", "child"])
        assert result.exit_code == 0
        result = runner.invoke(cli, ["config", "get", "theme"])
        assert result.output.strip() == "child"

    def test_invalid_value(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["config", "set", "sync-path-type", "elsewhere"])
        assert result.exit_code == 1

    def test_unknown_key(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["config", "get", "colour"])
        assert result.exit_code == 1

    def test_list_json(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["--json", "config", "list"])
        assert json.loads(result.stdout)["sync-path-type"] == "theme"


class TestDoctor:
    def test_healthy(self, runner: CliRunner, loaded):
        runner.invoke(cli, ["push", "--all"])
        result = runner.invoke(cli, ["doctor"])
        assert result.exit_code == 0
        assert "All checks passed!" in result.output

    def test_broken_group_file(self, runner: CliRunner, loaded):
        runner.invoke(cli, ["push", "--all"])
        with open(os.path.join(SYNC_DIR, "groups", "care.json"), "w") as f:
            f.write("{")
        result = runner.invoke(cli, ["doctor"])
        assert "Found 1 issue(s)" in result.output
