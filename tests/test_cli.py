"""Tests for the click CLI in brainstorm/cli.py."""

import pytest
from click.testing import CliRunner

import brainstorm.cli as cli
from brainstorm.registry import ProviderRegistry
from brainstorm.sessions import SessionStore
from tests.conftest import FakeClient


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def patched_cli(monkeypatch, sample_app_config, registry):
    """Point the CLI at the sample config and a FakeClient; returns the client."""
    client = FakeClient(registry)
    monkeypatch.setattr(cli, "load_config", lambda path=None: sample_app_config)
    monkeypatch.setattr(cli, "_build_client", lambda config: client)
    monkeypatch.setattr(cli, "_setup_logging", lambda verbose: None)
    return client


def test_determine_models_from_arg(registry):
    models = cli._determine_models(registry, " openai:gpt-4o, ,ollama:llama3:8b ")
    assert models == ["openai:gpt-4o", "ollama:llama3:8b"]


def test_determine_models_defaults_to_every_provider(registry):
    assert cli._determine_models(registry, None) == [
        "openai:gpt-4o",
        "deepseek:deepseek-chat",
        "ollama:llama3",
    ]


def test_determine_models_empty_registry():
    assert cli._determine_models(ProviderRegistry(), None) == []


def test_list_providers(runner, patched_cli, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)

    result = runner.invoke(cli.main, ["--list-providers"])

    assert result.exit_code == 0
    assert "openai" in result.output
    assert "DEEPSEEK_API_KEY" in result.output
    assert patched_cli.calls == []


def test_missing_topic_exits(runner, patched_cli):
    result = runner.invoke(cli.main, [])
    assert result.exit_code == 1
    assert "Provide a TOPIC" in result.output


def test_rounds_out_of_range_exits(runner, patched_cli):
    result = runner.invoke(cli.main, ["Topic", "--rounds", "6"])
    assert result.exit_code == 1
    assert "between 1 and 5" in result.output


def test_single_model_exits(runner, patched_cli):
    result = runner.invoke(cli.main, ["Topic", "--models", "openai:gpt-4o"])
    assert result.exit_code == 1
    assert "at least 2 models" in result.output


def test_config_error_exits(runner, monkeypatch):
    def broken(path=None):
        raise FileNotFoundError("Config file not found: nope.yaml")

    monkeypatch.setattr(cli, "load_config", broken)
    monkeypatch.setattr(cli, "_setup_logging", lambda verbose: None)

    result = runner.invoke(cli.main, ["Topic", "--config", "nope.yaml"])

    assert result.exit_code == 1
    assert "Config error" in result.output


def test_full_run_saves_transcript(runner, patched_cli, tmp_path):
    out_dir = tmp_path / "debates"
    result = runner.invoke(
        cli.main,
        [
            "YAML or JSON?",
            "--models",
            "openai:gpt-4o,deepseek:deepseek-chat",
            "--rounds",
            "2",
            "--skip-health-check",
            "--output",
            str(out_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    saved = list(out_dir.glob("*.md"))
    assert len(saved) == 1
    assert "# Brainstorm: YAML or JSON?" in saved[0].read_text(encoding="utf-8")
    # two models x two rounds, then the synthesizer
    assert len(patched_cli.calls) == 5


def test_no_save_writes_nothing(runner, patched_cli, sample_app_config):
    result = runner.invoke(cli.main, ["Topic", "--skip-health-check", "--no-save", "--rounds", "1"])
    assert result.exit_code == 0, result.output
    assert not sample_app_config.defaults.output_dir.exists()


def test_topic_from_file(runner, patched_cli, tmp_path):
    topic_file = tmp_path / "topic.md"
    topic_file.write_text("  Monorepo or polyrepo?  \n", encoding="utf-8")

    result = runner.invoke(
        cli.main, ["--file", str(topic_file), "--skip-health-check", "--no-save", "--rounds", "1"]
    )

    assert result.exit_code == 0, result.output
    _, _, user = patched_cli.calls[0]
    assert "Monorepo or polyrepo?" in user


def test_unknown_provider_fails_cleanly(runner, patched_cli):
    result = runner.invoke(
        cli.main, ["Topic", "--models", "nope:a,nope:b", "--skip-health-check", "--no-save"]
    )
    assert result.exit_code == 1
    assert "Brainstorm failed" in result.output


def test_participate_runs_host_turns(runner, patched_cli):
    host_text = "I think YAML wins for humans, but we should validate it with a JSON schema in CI."
    result = runner.invoke(
        cli.main,
        ["Topic", "--participate", "--rounds", "2", "--skip-health-check", "--no-save"],
        input=f"too short\n{host_text}\n{host_text}\n",
    )

    assert result.exit_code == 0, result.output
    assert "at least 50 characters" in result.output
    synth_user = patched_cli.calls[-1][2]
    assert "[host:participant]" in synth_user


def test_participate_survives_slow_host(runner, patched_cli, monkeypatch):
    now = [0.0]
    stores = []

    def make_store(ttl_sec):
        store = SessionStore(ttl_sec=ttl_sec, clock=lambda: now[0])
        stores.append(store)
        return store

    def slow_host(round_number, total_rounds):
        now[0] += 330
        return "After a long think: YAML for people, a JSON schema checked in CI for machines."

    monkeypatch.setattr(cli, "SessionStore", make_store)
    monkeypatch.setattr(cli, "_read_host_response", slow_host)

    result = runner.invoke(
        cli.main, ["Topic", "--participate", "--rounds", "2", "--skip-health-check", "--no-save"]
    )

    assert result.exit_code == 0, result.output
    assert stores[0].ttl_sec == 3600.0
    assert now[0] == 660
