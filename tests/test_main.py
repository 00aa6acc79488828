"""
Tests for the command line entry point.
"""

import logging
from unittest.mock import Mock, patch

import pytest

from fault_recovery import main as cli
from fault_recovery.models import ErrorKind, RecoveryOutcome


class TestParser:
    """Test argument parsing."""

    def test_kind_and_options(self):
        args = cli.build_parser().parse_args(
            ["device_busy", "--target", "/dev/ttyS0", "--config-dir", "/tmp/cfg", "--log-level", "DEBUG"]
        )
        assert args.kind == "device_busy"
        assert args.target == "/dev/ttyS0"
        assert args.config_dir == "/tmp/cfg"
        assert args.log_level == "DEBUG"

    def test_rejects_unknown_kind(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["segfault"])


class TestMain:
    """Test main() wiring and exit codes."""

    def run_main(self, argv, outcome):
        dispatcher = Mock()
        dispatcher.recover.return_value = outcome

        with patch.object(cli, 'setup_logging'), \
             patch('fault_recovery.main.signal.signal'), \
             patch('fault_recovery.recovery.RecoveryDispatcher', return_value=dispatcher), \
             patch('fault_recovery.config.ConfigManager') as manager_class:
            exit_code = cli.main(argv)

        return exit_code, dispatcher, manager_class

    @pytest.mark.parametrize("outcome,expected", [
        (RecoveryOutcome.SUCCESS, 0),
        (RecoveryOutcome.PARTIAL, 1),
        (RecoveryOutcome.FAILED, 2),
    ])
    def test_exit_codes(self, outcome, expected, capsys):
        exit_code, _, _ = self.run_main(["memory"], outcome)

        assert exit_code == expected
        assert f"Recovery {outcome.label} for error type memory" in capsys.readouterr().out

    def test_target_and_config_dir_forwarded(self):
        _, dispatcher, manager_class = self.run_main(
            ["file_access", "--target", "/srv/data.txt", "--config-dir", "/etc/recovery"],
            RecoveryOutcome.SUCCESS
        )

        manager_class.assert_called_once_with("/etc/recovery")
        call = dispatcher.recover.call_args
        assert call.args[0] == ErrorKind.FILE_ACCESS
        assert call.kwargs['target'] == "/srv/data.txt"
        assert call.kwargs['token'].is_cancelled is False

    def test_target_ignored_for_untargeted_kind_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="fault_recovery.main"):
            self.run_main(["memory", "--target", "/srv/data.txt"], RecoveryOutcome.SUCCESS)

        assert "--target is ignored for error type memory" in caplog.text

    def test_target_for_targeted_kind_does_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="fault_recovery.main"):
            self.run_main(["text_busy", "--target", "/srv/app.bin"], RecoveryOutcome.SUCCESS)

        assert "ignored" not in caplog.text


class TestSetupLogging:
    """Test log handler setup."""

    def test_creates_log_file(self, tmp_path):
        with patch('fault_recovery.main.logging.basicConfig') as basic_config:
            cli.setup_logging("DEBUG", tmp_path / "logs")

        assert (tmp_path / "logs").is_dir()
        handlers = basic_config.call_args.kwargs['handlers']
        assert len(handlers) == 2
        for handler in handlers:
            handler.close()
