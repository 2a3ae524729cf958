"""Command line entry point."""
import pytest

import sca_action.cli as cli_module
from sca_action.action import ActionResult
from sca_action.cli import main


def test_extract_prints_url(tmp_path, capsys):
    out = tmp_path / "scaResults.txt"
    out.write_text("Full Report Details https://a.test/r/1\n")
    assert main(["extract", str(out), "--sidecar", str(tmp_path / "none.json")]) == 0
    assert capsys.readouterr().out.strip().endswith("https://a.test/r/1")


def test_extract_not_found(tmp_path):
    out = tmp_path / "scaResults.txt"
    out.write_text("nothing useful\n")
    assert main(["extract", str(out), "--sidecar", str(tmp_path / "none.json")]) == 1


def test_extract_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        main(["extract", str(tmp_path / "nope.txt")])


def test_scan_overrides_env(monkeypatch, tmp_path):
    seen = {}

    def fake_run_action(options, context, *, results_dir, workdir=None, session=None):
        seen.update(options=options, context=context, results_dir=results_dir)
        return ActionResult(invoke=None, scan_url="https://a.test/r", failed=True, summary="failed")

    monkeypatch.setattr(cli_module, "run_action", fake_run_action)
    monkeypatch.setenv("INPUT_PATH", "from-env")
    monkeypatch.setenv("INPUT_QUICK", "true")
    monkeypatch.setenv("RUNNER_OS", "Linux")

    code = main(["scan", "--path", "from-flag", "--results-dir", str(tmp_path / "res")])
    assert code == 1
    assert seen["options"].path == "from-flag"
    assert seen["options"].quick is True
    assert seen["context"].runner_os == "Linux"
    assert (tmp_path / "res").is_dir()


def test_no_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out
