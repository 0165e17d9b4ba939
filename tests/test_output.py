"""Tests for brainstorm/output.py."""

from pathlib import Path

import pytest

from brainstorm.models import DebateResult, DebateStats
from brainstorm.output import _round_label, _slug, format_result, save_to_file


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    long_text = "a" * 100
    assert len(_slug(long_text)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


def test_round_labels():
    assert _round_label(0, 3) == "Initial Perspectives"
    assert _round_label(1, 3) == "Refinement"
    assert _round_label(2, 3) == "Final Positions"


@pytest.fixture
def sample_debate_result(sample_rounds) -> DebateResult:
    return DebateResult(
        topic="YAML or JSON for config?",
        rounds=sample_rounds,
        synthesis="## Consensus\nAll agreed.",
        models_failed=["deepseek:deepseek-chat"],
        stats=DebateStats(total_duration_sec=10.5, estimated_tokens=1234, estimated_cost="~$0.0037"),
    )


def test_format_result_header(sample_debate_result):
    md = format_result(sample_debate_result)
    assert md.startswith("# Brainstorm: YAML or JSON for config?")
    assert "**Models:** openai:gpt-4o, deepseek:deepseek-chat" in md
    assert "**Rounds:** 2" in md
    assert "~1,234" in md
    assert "~$0.0037" in md


def test_format_result_lists_failures(sample_debate_result):
    md = format_result(sample_debate_result)
    assert "**Failures:** deepseek:deepseek-chat" in md
    assert "> **ERROR:** [deepseek:deepseek-chat] timed out after 120s" in md


def test_format_result_rounds_and_synthesis(sample_debate_result):
    md = format_result(sample_debate_result)
    assert "## Round 1 - Initial Perspectives" in md
    assert "## Round 2 - Final Positions" in md
    assert "## Synthesis" in md
    assert md.index("## Round 2") < md.index("## Consensus")


def test_format_result_without_failures(sample_rounds):
    result = DebateResult(
        topic="t",
        rounds=sample_rounds[:1],
        synthesis="s",
        models_failed=[],
        stats=DebateStats(1.0, 10, "~$0.0000"),
    )
    assert "**Failures:**" not in format_result(result)


def test_save_to_file_creates_file(tmp_path: Path, sample_debate_result: DebateResult):
    saved = save_to_file(sample_debate_result, tmp_path / "output")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert saved.name.endswith("_yaml-or-json-for-config.md")


def test_save_to_file_creates_output_dir(tmp_path: Path, sample_debate_result: DebateResult):
    output_dir = tmp_path / "nested" / "output"
    assert not output_dir.exists()
    save_to_file(sample_debate_result, output_dir)
    assert output_dir.exists()


def test_save_to_file_content(tmp_path: Path, sample_debate_result: DebateResult):
    saved = save_to_file(sample_debate_result, tmp_path)
    assert saved.read_text(encoding="utf-8") == format_result(sample_debate_result)


def test_save_to_file_unsluggable_topic(tmp_path: Path, sample_rounds):
    result = DebateResult("???", sample_rounds, "s", [], DebateStats(1.0, 1, "~$0.0000"))
    assert save_to_file(result, tmp_path).name.endswith("_brainstorm.md")
