"""
Tests for run_verifier.py and environment-driven configuration.
"""

import io
import json

import pytest

import run_verifier
from xpath_verifier.config import ParserBackend, VerifierConfig
from xpath_verifier.exceptions import InputError


PAYLOAD = {
    "xpaths": {"H": ["/html/body/p", "count(//p)"]},
    "urls": {
        "A": {"targets": {"H": "X"}, "content": "<html><body><p>X</p></body></html>"},
        "B": {"targets": {"H": "Y"}, "content": "<html><body><p>Z</p></body></html>"},
    },
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MAX_WORKERS", "PARSER_BACKEND", "SANITIZE_MARKUP", "EVALUATE_MISSING_TARGETS", "LOG_LEVEL"):
        monkeypatch.delenv(f"XPATH_VERIFIER_{name}", raising=False)
    # Keep a developer's .env out of the tests
    monkeypatch.setattr(run_verifier, "load_dotenv", lambda *args, **kwargs: False)


@pytest.fixture
def input_file(tmp_path):
    path = tmp_path / "input.json"
    path.write_text(json.dumps(PAYLOAD))
    return path


def test_writes_report_to_file(input_file, tmp_path):
    out = tmp_path / "out.json"

    assert run_verifier.main([str(input_file), "-o", str(out)]) == 0
    assert json.loads(out.read_text()) == {
        "/html/body/p": {"successful": ["A"], "unsuccessful": ["B"]},
        "count(//p)": {"successful": [], "unsuccessful": ["A", "B"]},
    }


def test_reads_stdin_and_prints_sorted_report(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(json.dumps(PAYLOAD).encode())))

    assert run_verifier.main([]) == 0

    printed = capsys.readouterr().out
    report = json.loads(printed)
    assert list(report) == sorted(report)
    assert report["/html/body/p"]["successful"] == ["A"]


def test_extract_mode(input_file, capsys):
    assert run_verifier.main([str(input_file), "--extract"]) == 0

    assert json.loads(capsys.readouterr().out) == {
        "/html/body/p": {"A": "X", "B": "Z"},
        "count(//p)": {},
    }


def test_diagnostics_file(input_file, tmp_path):
    diagnostics = tmp_path / "diag.json"

    assert run_verifier.main([str(input_file), "-o", str(tmp_path / "o.json"), "-d", str(diagnostics)]) == 0

    entries = json.loads(diagnostics.read_text())
    assert {(e["expression"], e["url"], e["reason"]) for e in entries} == {
        ("/html/body/p", "B", "value_mismatch"),
        ("count(//p)", "A", "non_string_result"),
        ("count(//p)", "B", "non_string_result"),
    }


def test_invalid_json_exits_2_without_output(tmp_path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text("{invalid json")

    assert run_verifier.main([str(bad)]) == 2

    captured = capsys.readouterr()
    assert captured.out == ""
    assert "Error processing input" in captured.err


def test_missing_input_file_exits_1(tmp_path, capsys):
    assert run_verifier.main([str(tmp_path / "missing.json")]) == 1
    assert "Error reading input" in capsys.readouterr().err


def test_invalid_environment_setting_exits_2(input_file, monkeypatch):
    monkeypatch.setenv("XPATH_VERIFIER_MAX_WORKERS", "zero")

    assert run_verifier.main([str(input_file)]) == 2


# --- Configuration ---

def test_config_from_env(monkeypatch):
    monkeypatch.setenv("XPATH_VERIFIER_MAX_WORKERS", "3")
    monkeypatch.setenv("XPATH_VERIFIER_PARSER_BACKEND", "html5lib")
    monkeypatch.setenv("XPATH_VERIFIER_EVALUATE_MISSING_TARGETS", "true")
    monkeypatch.setenv("XPATH_VERIFIER_LOG_LEVEL", "debug")

    config = VerifierConfig.from_env()

    assert config.max_workers == 3
    assert config.parser_backend is ParserBackend.HTML5LIB
    assert config.evaluate_missing_targets is True
    assert config.log_level == "DEBUG"


def test_explicit_overrides_beat_env(monkeypatch):
    monkeypatch.setenv("XPATH_VERIFIER_MAX_WORKERS", "3")

    assert VerifierConfig.from_env(max_workers=7, parser_backend=None).max_workers == 7


def test_config_defaults():
    config = VerifierConfig.from_env()

    assert config.max_workers is None
    assert config.parser_backend is ParserBackend.LXML
    assert config.sanitize_markup is True
    assert config.evaluate_missing_targets is False


@pytest.mark.parametrize("name,value", [
    ("MAX_WORKERS", "0"),
    ("PARSER_BACKEND", "regex"),
    ("LOG_LEVEL", "LOUD"),
])
def test_invalid_env_values_raise_input_error(monkeypatch, name, value):
    monkeypatch.setenv(f"XPATH_VERIFIER_{name}", value)

    with pytest.raises(InputError):
        VerifierConfig.from_env()
