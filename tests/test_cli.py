"""Tests for the click entry point in roundtable/cli.py."""

import pytest
from click.testing import CliRunner

from roundtable.cli import main
from roundtable.models import BackendId
from tests.conftest import AGREE, DISAGREE, fatal_error, make_backends


@pytest.fixture
def cli_env(sample_app_config, monkeypatch):
    monkeypatch.setattr("roundtable.cli.load_dotenv", lambda: None)
    monkeypatch.setattr("roundtable.cli.load_config", lambda: sample_app_config)
    for env in ("TEST_OPENAI_KEY", "TEST_ANTHROPIC_KEY", "TEST_GOOGLE_KEY"):
        monkeypatch.setenv(env, "test-key")
    return sample_app_config


def _patch_backends(monkeypatch, backends):
    monkeypatch.setattr("roundtable.cli.build_backends", lambda creds, cfg: backends)


def test_missing_question_exits(cli_env):
    result = CliRunner().invoke(main, [])
    assert result.exit_code == 1
    assert "Provide a QUESTION" in result.output


def test_missing_keys_exits(cli_env, monkeypatch):
    monkeypatch.delenv("TEST_GOOGLE_KEY")
    result = CliRunner().invoke(main, ["q", "--skip-health-check"])
    assert result.exit_code == 1
    assert "TEST_GOOGLE_KEY" in result.output


def test_config_error_exits(monkeypatch):
    def broken():
        raise ValueError("max_rounds must be at least 1")

    monkeypatch.setattr("roundtable.cli.load_dotenv", lambda: None)
    monkeypatch.setattr("roundtable.cli.load_config", broken)
    result = CliRunner().invoke(main, ["q"])
    assert result.exit_code == 1
    assert "Config error" in result.output


def test_max_rounds_must_be_positive(cli_env):
    result = CliRunner().invoke(main, ["q", "--max-rounds", "0"])
    assert result.exit_code == 2


def test_full_run_with_consensus(cli_env, monkeypatch):
    _patch_backends(monkeypatch, make_backends(chatgpt=["Four"], claude=[AGREE, "It is four."], gemini=[AGREE]))
    result = CliRunner().invoke(main, ["What is 2+2?", "--skip-health-check"])
    assert result.exit_code == 0, result.output
    assert "Round 1" in result.output
    assert "Four" in result.output
    assert "It is four." in result.output


def test_question_from_file_and_save(cli_env, monkeypatch, tmp_path):
    question = tmp_path / "question.md"
    question.write_text("What is 2+2?\n", encoding="utf-8")
    backends = make_backends(chatgpt=["Four"], claude=[AGREE, "It is four."], gemini=[AGREE])
    _patch_backends(monkeypatch, backends)

    out_dir = tmp_path / "out"
    result = CliRunner().invoke(
        main, ["--file", str(question), "--save", "--output", str(out_dir), "--skip-health-check", "--no-stream"]
    )

    assert result.exit_code == 0, result.output
    assert backends[BackendId.CHATGPT].prompts[0].startswith("What is 2+2?")
    saved = list(out_dir.glob("*.md"))
    assert len(saved) == 1
    assert "## Final Answer" in saved[0].read_text(encoding="utf-8")


def test_failed_run_exits_nonzero(cli_env, monkeypatch):
    _patch_backends(monkeypatch, make_backends(chatgpt=["Four"], claude=[fatal_error("claude")], gemini=[DISAGREE]))
    result = CliRunner().invoke(main, ["q", "--skip-health-check"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_health_check_decline_exits(cli_env, monkeypatch):
    _patch_backends(monkeypatch, make_backends())

    async def failing_checks(backends):
        return {name: (False, "connection refused") for name in backends}

    monkeypatch.setattr("roundtable.cli.run_health_checks", failing_checks)
    result = CliRunner().invoke(main, ["q"], input="n\n")
    assert result.exit_code == 0
    assert "FAIL" in result.output
