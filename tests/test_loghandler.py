import logging

from loghandler import SWITCH_JOURNAL_HEADER, clear_old_logs, get_logger, get_switch_logger


def test_loggers_are_available_after_setup():
    assert isinstance(get_logger(), logging.Logger)
    switch = get_switch_logger()
    assert switch.name == "switch"
    assert switch.propagate is False


def test_journal_starts_with_header(_logging):
    journal = sorted(_logging.glob("switch-journal_*.csv"))[0]
    assert journal.read_text(encoding="utf-8").splitlines()[0] == SWITCH_JOURNAL_HEADER


def test_clear_old_logs_only_touches_own_files(tmp_path, capsys):
    (tmp_path / "antenna-switch_20250101_120000.log").write_text("x")
    (tmp_path / "switch-journal_20250101_120000.csv").write_text("x")
    (tmp_path / "notes.csv").write_text("keep")

    assert clear_old_logs(str(tmp_path)) == 2
    assert [p.name for p in tmp_path.iterdir()] == ["notes.csv"]
    assert "Removed 2" in capsys.readouterr().out

    assert clear_old_logs(str(tmp_path / "missing")) == 0
