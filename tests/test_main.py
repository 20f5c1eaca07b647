"""Tests for the entry point wiring."""

import sys

import pytest

import main


class TestCliParser:
    def test_repeatable_logfile(self):
        args = main.build_cli_parser().parse_args(["--logfile", "System", "--logfile", "Security"])
        assert args.logfile == ["System", "Security"]

    def test_defaults_left_unset(self):
        args = main.build_cli_parser().parse_args([])
        assert args.logfile is None
        assert args.codec is None


@pytest.mark.skipif(sys.platform == "win32", reason="needs a machine without WMI")
class TestMainWithoutWmi:
    def test_fatal_setup_stops_input(self, tmp_path, monkeypatch):
        monkeypatch.setattr(main.signal, "signal", lambda *args: None)
        out = tmp_path / "events.log"
        main.main(["--output", str(out), "--hostname", "h", "--codec", "json"])
        assert out.read_text() == ""
