# tests/test_cli.py
"""
Tests for the studyblocks command-line interface.

``materialize`` runs for real on a JSON file. ``generate`` gets a fake
generation collaborator through ``studyblocks.cli._get_generator`` so no
model is called.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from studyblocks.agents.generator import GenerationError, GenerationOutput
from studyblocks.agents.source_files import SourceDocument
from studyblocks.cli import app

PROPOSALS: dict[str, Any] = {
    "title": "Circuits",
    "blocks": [
        {"type": "text", "content": "<h1>Ohm</h1>", "order": 0},
        {"type": "latex", "content": "V = I R", "order": 1},
        {
            "type": "image_request",
            "content": "resistor network",
            "page": 2,
            "source_file": "lecture.pdf",
            "order": 2,
        },
        {"type": "movie", "content": "?"},
    ],
}


class FakeGenerator:
    def __init__(self, output: GenerationOutput | Exception) -> None:
        self.output = output

    def generate(self, sources: Sequence[SourceDocument]) -> GenerationOutput:
        if isinstance(self.output, Exception):
            raise self.output
        return self.output


@pytest.fixture  # type: ignore[misc]
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture  # type: ignore[misc]
def proposals_file(tmp_path: Path) -> Path:
    path = tmp_path / "proposals.json"
    path.write_text(json.dumps(PROPOSALS), encoding="utf-8")
    return path


def test_cli_help_shows_commands(runner: CliRunner) -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0, result.output
    assert "materialize" in result.output
    assert "generate" in result.output


def test_materialize_json_output(runner: CliRunner, proposals_file: Path) -> None:
    result = runner.invoke(
        app,
        [
            "materialize",
            str(proposals_file),
            "--policy",
            "manual",
            "--file",
            "lecture.pdf=https://files.example/lecture.pdf",
            "--json",
        ],
    )
    assert result.exit_code == 0, result.output
    blocks = json.loads(result.output)
    assert [b["type"] for b in blocks] == ["text", "formula", "pending-image"]
    assert [b["order"] for b in blocks] == [0, 1, 2]
    assert blocks[2]["content"]["candidateFileUrl"] == "https://files.example/lecture.pdf"
    assert blocks[2]["provenance"]["source_page"] == 2


def test_materialize_table_reports_rejects(runner: CliRunner, proposals_file: Path) -> None:
    result = runner.invoke(app, ["materialize", str(proposals_file), "--policy", "suppress"])
    assert result.exit_code == 0, result.output
    assert "Circuits" in result.output
    assert "Dropped 1 malformed item" in result.output


def test_materialize_rejects_bad_options(runner: CliRunner, proposals_file: Path) -> None:
    bad_policy = runner.invoke(app, ["materialize", str(proposals_file), "--policy", "often"])
    assert bad_policy.exit_code != 0
    bad_file = runner.invoke(
        app, ["materialize", str(proposals_file), "--policy", "manual", "--file", "no-url"]
    )
    assert bad_file.exit_code != 0


def test_materialize_invalid_json_exits_1(runner: CliRunner, tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("not json at all", encoding="utf-8")
    result = runner.invoke(app, ["materialize", str(path), "--policy", "suppress"])
    assert result.exit_code == 1


def test_generate_fails_on_missing_file(runner: CliRunner) -> None:
    result = runner.invoke(app, ["generate", "ghost.pdf"])
    assert result.exit_code != 0
    assert "does not exist" in result.output


def test_generate_happy_path_writes_traces(runner: CliRunner, tmp_path: Path) -> None:
    lecture = tmp_path / "lecture.md"
    lecture.write_text("Ohm's law relates voltage and current.", encoding="utf-8")
    trace_dir = tmp_path / "trace"
    generator = FakeGenerator(
        GenerationOutput(title="Circuits", items=list(PROPOSALS["blocks"]))
    )

    with patch("studyblocks.cli._get_generator", return_value=generator) as factory:
        result = runner.invoke(
            app,
            [
                "generate",
                str(lecture),
                "--policy",
                "suppress",
                "--model",
                "fast",
                "--trace-dir",
                str(trace_dir),
            ],
        )

    assert result.exit_code == 0, result.output
    factory.assert_called_once_with("fast")
    assert "Circuits" in result.output
    assert len(list(trace_dir.glob("*.json"))) == 3


def test_generate_reports_generation_errors(runner: CliRunner, tmp_path: Path) -> None:
    lecture = tmp_path / "lecture.md"
    lecture.write_text("text", encoding="utf-8")
    generator = FakeGenerator(GenerationError("model unavailable"))

    with patch("studyblocks.cli._get_generator", return_value=generator):
        result = runner.invoke(app, ["generate", str(lecture), "--policy", "suppress"])

    assert result.exit_code == 1
    assert "model unavailable" in result.output
