"""Unit tests for the command-line interface."""

import json
import logging
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

import cli
from tfm_arbiter.config import create_default_config
from tests.mocks.scripted import PASSING_SCORES, ScriptedEngine

TEXT = "The quick brown fox jumps over the lazy dog near the quiet river bank at dawn."


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger("tfm_arbiter")
    saved = (root.level, list(root.handlers), root.propagate)
    yield
    root.setLevel(saved[0])
    root.handlers = saved[1]
    root.propagate = saved[2]


def run_cli(*args):
    with patch.object(sys, "argv", ["cli.py", *args]):
        cli.main()


class TestCli:
    """Test subcommand dispatch."""

    def test_presets(self, capsys):
        run_cli("presets", "creative")
        data = json.loads(capsys.readouterr().out)
        assert data["mode"] == "creative"
        assert data["quality_gates"]["min_fnm"] == 0.65

    def test_init_config(self, tmp_path, capsys):
        path = tmp_path / "config.json"
        run_cli("init-config", str(path))
        assert json.loads(path.read_text()) == create_default_config()

    def test_init_config_refuses_overwrite(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{}")
        with pytest.raises(SystemExit):
            run_cli("init-config", str(path))
        assert path.read_text() == "{}"

    def test_no_command_prints_help(self):
        with pytest.raises(SystemExit):
            run_cli()

    def test_missing_input_file(self, tmp_path):
        with pytest.raises(SystemExit):
            run_cli("run", str(tmp_path / "missing.txt"))

    def test_run_writes_output_and_telemetry(self, tmp_path, capsys):
        config = create_default_config()
        config["oracle"]["kind"] = "lexical"
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(config))
        input_path = tmp_path / "input.txt"
        input_path.write_text("Write about a fox by the river.")
        output_path = tmp_path / "out" / "result.txt"
        telemetry_path = tmp_path / "telemetry.json"

        engine = ScriptedEngine([
            (TEXT, PASSING_SCORES),
            (TEXT + " ", PASSING_SCORES),
            (TEXT, PASSING_SCORES),
        ])
        with patch("tfm_arbiter.engine.LLMIterationEngine", return_value=engine):
            run_cli(
                "run", str(input_path),
                "--config", str(config_path),
                "--output", str(output_path),
                "--telemetry", str(telemetry_path),
            )

        assert output_path.read_text() == TEXT
        decisions = json.loads(telemetry_path.read_text())
        assert [d["action"] for d in decisions] == ["CONTINUE", "CONTINUE", "STOP_ACCEPT"]
        assert "Converged after 3 iterations" in capsys.readouterr().out

    def test_run_prints_mode_free_metrics(self, tmp_path, capsys):
        config = create_default_config()
        config["oracle"]["kind"] = "lexical"
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(config))
        input_path = tmp_path / "input.txt"
        input_path.write_text("Write about a fox by the river.")

        engine = ScriptedEngine([
            (TEXT, PASSING_SCORES),
            (TEXT + " ", PASSING_SCORES),
            (TEXT, PASSING_SCORES),
        ], votes=[1.0, 1.0, 0.0, 0.0])
        with patch("tfm_arbiter.engine.LLMIterationEngine", return_value=engine):
            run_cli("run", str(input_path), "--config", str(config_path))

        out = capsys.readouterr().out
        assert "Quality gain: +50.0%" in out
        assert "Compactness:" in out
        assert "RGI:" in out

    def test_invalid_iteration_budget(self, tmp_path, capsys):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps(create_default_config()))
        input_path = tmp_path / "input.txt"
        input_path.write_text("Write about a fox by the river.")

        with pytest.raises(SystemExit):
            run_cli("run", str(input_path), "--config", str(config_path), "--max-iterations", "0")
        assert "Budget limits must be positive" in capsys.readouterr().out


class TestPackaging:
    """Test how the project installs."""

    def test_cli_is_not_installed_as_a_top_level_module(self):
        tomllib = pytest.importorskip("tomllib")
        with open(Path(__file__).parents[2] / "pyproject.toml", "rb") as f:
            data = tomllib.load(f)

        assert "py-modules" not in data.get("tool", {}).get("setuptools", {})
        assert "cli:main" not in data["project"].get("scripts", {}).values()
        assert data["tool"]["setuptools"]["packages"]["find"]["include"] == ["tfm_arbiter*"]
