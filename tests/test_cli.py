"""
Tests for the click CLI, wired to in-memory fakes through Services
"""

import json

import pytest
from click.testing import CliRunner

from daybook.config import DaybookConfig, load_config
from daybook.db import Database
from daybook.llm.base import Completion, ToolCall
from daybook.main import cli
from daybook.services import Services
from daybook.tools.clock import ClockTool
from daybook.tools.executor import ToolExecutor
from tests.conftest import HashingEmbedder, ScriptedLLM, text_completion


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def services(tmp_path, llm):
    svc = Services(
        DaybookConfig(db_path=str(tmp_path / "cli.db")),
        db=Database(tmp_path / "cli.db"),
        embedder=HashingEmbedder(),
        llm=llm,
        tools=ToolExecutor([ClockTool()]),
    )
    yield svc
    svc.close()


@pytest.fixture
def invoke(services):
    runner = CliRunner()

    def _invoke(*args, input=None):
        return runner.invoke(cli, list(args), obj=services, input=input, catch_exceptions=False)
    return _invoke


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data))
    return str(path)


class TestContextCommands:
    """Tests for ingest, search and stats"""

    def test_ingest_then_search(self, tmp_path, invoke, services):
        events = _write(tmp_path, "events.json", {"items": [
            {"id": "e1", "summary": "Dentist", "start": {"dateTime": "2026-03-03T10:00:00Z"}},
            {"id": "e2", "summary": "Team offsite", "start": {"date": "2026-03-10"}},
            {"summary": "no id"},
        ]})

        result = invoke("ingest", "calendar", events, "-u", "u1")
        assert result.exit_code == 0
        assert "processed 2" in result.output
        assert "skipped 1" in result.output
        assert len(services.context_store.list_by_user("u1")) == 2

        result = invoke("search", "dentist", "-u", "u1", "--limit", "1")
        assert result.exit_code == 0
        assert "Dentist" in result.output

    def test_search_with_no_context(self, invoke):
        result = invoke("search", "anything", "--source", "mail")
        assert result.exit_code == 0
        assert "No matching context" in result.output

    def test_ingest_rejects_unknown_source(self, tmp_path, invoke):
        path = _write(tmp_path, "x.json", [])
        assert invoke("ingest", "slack", path).exit_code == 2

    def test_stats(self, tmp_path, invoke):
        invoke("ingest", "mail", _write(tmp_path, "mail.json", [{"id": "m1", "subject": "Hi", "body": "Hello"}]))

        result = invoke("stats")

        assert result.exit_code == 0
        assert "Context entries" in result.output
        assert "mail" in result.output


class TestProfileCommands:
    def test_set_show_delete(self, tmp_path, invoke):
        path = _write(tmp_path, "profile.json", {"name": "Jordan", "preferences": {"commuteMethod": "bike"}})

        assert invoke("profile", "set", path).exit_code == 0
        shown = invoke("profile", "show")
        assert "Jordan" in shown.output

        deleted = invoke("profile", "delete", "--yes")
        assert deleted.exit_code == 0
        assert "No profile" in invoke("profile", "show").output

    def test_empty_profile_is_error(self, tmp_path, invoke):
        result = invoke("profile", "set", _write(tmp_path, "empty.json", {}))
        assert result.exit_code == 1
        assert "non-empty" in result.output


class TestFeedCommands:
    """Tests for feed generate, list, status and interact"""

    def _generate(self, tmp_path, invoke, llm):
        invoke("ingest", "mail", _write(tmp_path, "mail.json", [
            {"id": "m1", "from": "sam@example.com", "subject": "Contract", "body": "Please sign by Friday"},
        ]))
        llm.texts.append(json.dumps({"items": [{
            "source_index": 1,
            "title": "Sign the contract",
            "type": "task",
            "priority": "high",
            "actions": [{"label": "Open", "type": "navigate", "style": "primary"}],
        }]}))
        return invoke("feed", "generate")

    def _item_id(self, services):
        return services.db.conn.execute("SELECT id FROM feed_items").fetchone()["id"]

    def test_generate_and_list(self, tmp_path, invoke, llm):
        result = self._generate(tmp_path, invoke, llm)
        assert result.exit_code == 0
        assert "generated 1" in result.output

        listed = invoke("feed", "list")
        assert "Feed (1 items)" in listed.output
        assert "Sign" in listed.output

    def test_snooze_requires_until(self, tmp_path, invoke, llm, services):
        self._generate(tmp_path, invoke, llm)

        result = invoke("feed", "status", self._item_id(services), "snoozed")

        assert result.exit_code == 1
        assert "snooze_until is required" in result.output

    def test_status_by_short_id_and_interact(self, tmp_path, invoke, llm, services):
        self._generate(tmp_path, invoke, llm)
        item_id = self._item_id(services)

        result = invoke("feed", "status", item_id[:8], "dismissed")
        assert result.exit_code == 0
        assert "Feed is empty" in invoke("feed", "list").output

        result = invoke("feed", "interact", item_id, "a1", "--type", "navigate", "--result", "success")
        assert result.exit_code == 0
        assert len(services.lifecycle.get_item(item_id).interactions) == 1

    def test_show_unknown_item(self, invoke):
        result = invoke("feed", "show", "does-not-exist")
        assert result.exit_code == 1
        assert "Not found" in result.output


def test_ask(invoke, llm):
    llm.completions.append(text_completion("You have nothing scheduled."))

    result = invoke("ask", "What's on today?")

    assert result.exit_code == 0
    assert "You have nothing scheduled." in result.output


def test_ask_json(invoke, llm):
    llm.completions.extend([
        Completion(text="", tool_calls=[ToolCall(id="c1", name="get_current_time", arguments={"timezone": "UTC"})]),
        text_completion("It is morning."),
    ])

    result = invoke("ask", "What time is it?", "--json")

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["answer"] == "It is morning."
    assert data["sources"] == []
    assert data["tools_used"][0]["tool_name"] == "get_current_time"
    assert data["tools_used"][0]["error"] is None
    assert data["tools_used"][0]["result"]["timezone"] == "UTC"


class TestInitConfig:
    def test_writes_defaults(self, tmp_path, invoke):
        path = tmp_path / "config.json"

        result = invoke("--config", str(path), "init-config")

        assert result.exit_code == 0
        assert load_config(path) == DaybookConfig()

    def test_refuses_to_overwrite_without_force(self, tmp_path, invoke):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"provider": "claude"}))

        assert invoke("--config", str(path), "init-config").exit_code == 1
        assert load_config(path).provider == "claude"

        assert invoke("--config", str(path), "init-config", "--force").exit_code == 0
        assert load_config(path).provider == "gemini"
