import json
import subprocess
import sys

import click
import pytest
from click.testing import CliRunner

from rngvalidator.cli import _load, cli


def _run(*args):
    return subprocess.run(
        [sys.executable, "-m", "rngvalidator.cli", *args],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )


def test_validate_prints_json_report():
    completed = _run("validate", "1,1,1,1,1,1,1,1", "--no-suite")
    # not random: non-zero exit, report still printed
    assert completed.returncode == 1, completed.stderr.decode()
    data = json.loads(completed.stdout.decode())
    assert data["valid"] is False
    assert data["basic_quality"]["bit_count"] == 64


def test_validate_from_file_to_out(tmp_path):
    input_file = tmp_path / "numbers.txt"
    input_file.write_text("3\n1\n4\n1\n5\n9\n2\n6\n")
    output_file = tmp_path / "report.json"
    completed = _run("validate", "--file", str(input_file), "--range-min", "0", "--range-max", "9",
                     "--no-suite", "-o", str(output_file))
    assert output_file.exists(), completed.stderr.decode()
    data = json.loads(output_file.read_text(encoding="utf-8"))
    assert data["basic_quality"]["bit_count"] == 32


def test_validate_encoding_error():
    result = CliRunner().invoke(cli, ["validate", "1,2,nope", "--no-suite"])
    assert result.exit_code == 1
    assert json.loads(result.stdout)["error_kind"] == "InvalidFormat"


def test_validate_requires_input():
    result = CliRunner().invoke(cli, ["validate"])
    assert result.exit_code == 2


def test_config_file_is_used(tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("suite_enabled: false\nvalidity_threshold: 0.0\n")
    result = CliRunner().invoke(cli, ["validate", "0,0,0,0", "-c", str(cfg)])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["valid"] is True


def test_tiers():
    result = CliRunner().invoke(cli, ["tiers"])
    assert result.exit_code == 0
    assert "Tier 1 - Minimal" in result.output
    assert "RandomExcursionsVariant" in result.output

    as_json = json.loads(CliRunner().invoke(cli, ["tiers", "--json"]).stdout)
    assert len(as_json) == 5


def test_option_overrides_go_through_validation(monkeypatch):
    monkeypatch.delenv("RNGVALIDATOR_LOG_LEVEL", raising=False)
    assert _load(None, log_level="ERROR", suite_enabled=None).log_level == "ERROR"
    with pytest.raises(click.BadParameter):
        _load(None, log_level="LOUD")
