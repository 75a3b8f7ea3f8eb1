"""CLI tests against an in-memory store and the mock research backend."""

import json

import pytest
from click.testing import CliRunner

from conftest import make_model

from model_enrichment.cli import cli
from model_enrichment.enrichment.llm_client import default_research_payload
from model_enrichment.store import InMemoryStore


@pytest.fixture
def store():
    return InMemoryStore([
        make_model("gpt-4o", name="GPT-4o", provider="openai", quality="unknown"),
        make_model("claude", name="Claude", provider="anthropic"),
    ])


def invoke(store, *args):
    return CliRunner().invoke(cli, ["--mock-llm", *args], obj={"store": store})


class TestCli:

    def test_candidates(self, store):
        result = invoke(store, "candidates")
        assert result.exit_code == 0
        assert "GPT-4o" in result.output
        assert "2 models" in result.output

    def test_preview(self, store):
        result = invoke(store, "preview", "--provider", "openai")
        assert result.exit_code == 0
        assert "GPT-4o" in result.output
        assert "Estimated cost: $0.03" in result.output

    def test_start_follows_until_finished(self, store):
        result = invoke(store, "start", "--interval", "0.05")
        assert result.exit_code == 0, result.output
        assert "Enrichment started" in result.output
        assert "Enrichment completed!" in result.output
        assert store.get_model("claude")["dataSource"]["dataQuality"] == "verified"

    def test_start_test_mode_writes_nothing(self, store):
        result = invoke(store, "start", "--test-mode", "-m", "claude", "--interval", "0.05")
        assert result.exit_code == 0, result.output
        assert "Test mode" in result.output
        assert store.get_model("claude")["dataSource"]["dataQuality"] == "estimated"

    def test_start_rejects_invalid_config(self, store):
        result = invoke(store, "start", "--batch-size", "0")
        assert result.exit_code == 2

    def test_status_and_cancel_unknown(self, store):
        assert invoke(store, "status", "nope").exit_code == 1
        assert invoke(store, "cancel", "nope").exit_code == 1

    def test_executions_and_stats(self, store):
        invoke(store, "start", "--interval", "0.05")
        result = invoke(store, "executions")
        assert result.exit_code == 0
        assert "1 executions" in result.output

        result = invoke(store, "stats")
        assert '"models_enriched": 2' in result.output

    def test_research_then_apply(self, store, tmp_path):
        result = invoke(store, "research", "claude")
        assert result.exit_code == 0
        assert '"payload"' in result.output
        assert store.get_model("claude")["dataSource"]["dataQuality"] == "estimated"

        payload_file = tmp_path / "payload.json"
        payload_file.write_text(json.dumps({"payload": default_research_payload()}))
        result = invoke(store, "apply", "claude", str(payload_file))
        assert result.exit_code == 0, result.output
        assert store.get_model("claude")["dataSource"]["dataQuality"] == "verified"

    def test_apply_rejects_invalid_payload(self, store, tmp_path):
        payload_file = tmp_path / "payload.json"
        payload_file.write_text(json.dumps({"confidence": "high"}))
        assert invoke(store, "apply", "claude", str(payload_file)).exit_code == 2

    def test_watchdog_dry_run(self, store):
        result = invoke(store, "watchdog")
        assert result.exit_code == 0
        assert "stuck_executions" in result.output
