import subprocess
from unittest.mock import patch

import pytest

from gsm_watchdog.executor import CommandExecutor


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


# ===============================
# TEST GROUP: CommandExecutor
# ===============================
@patch("gsm_watchdog.executor.subprocess.run")
def test_success_strips_stdout(mock_run):
    mock_run.return_value = completed(stdout="Asterisk 20.5.0 built by root\n")

    result = CommandExecutor(default_timeout_s=10).run(["asterisk", "-rx", "core show version"])

    assert result.ok
    assert result.output == "Asterisk 20.5.0 built by root"
    mock_run.assert_called_once_with(
        ["asterisk", "-rx", "core show version"],
        capture_output=True,
        text=True,
        timeout=10,
        check=False,
    )


@patch("gsm_watchdog.executor.subprocess.run")
def test_explicit_timeout_overrides_default(mock_run):
    mock_run.return_value = completed()

    CommandExecutor(default_timeout_s=10).run(["lsusb"], timeout=2)

    assert mock_run.call_args.kwargs["timeout"] == 2


@pytest.mark.parametrize(
    "proc, expected_error",
    [
        # ❌ stderr carried through
        (completed(1, stderr="Unable to connect to remote asterisk\n"), "Unable to connect to remote asterisk"),

        # ❌ Silent failure
        (completed(3), "exit status 3"),
    ],
)
@patch("gsm_watchdog.executor.subprocess.run")
def test_non_zero_exit(mock_run, proc, expected_error):
    mock_run.return_value = proc

    result = CommandExecutor().run(["systemctl", "restart", "asterisk"])

    assert not result.ok
    assert result.error == expected_error
    assert result.output.startswith("Error:")
    assert result.timed_out is False


@patch("gsm_watchdog.executor.subprocess.run")
def test_timeout_never_raises(mock_run):
    mock_run.side_effect = subprocess.TimeoutExpired(cmd="asterisk", timeout=10)

    result = CommandExecutor(default_timeout_s=10).run(["asterisk", "-rx", "quectel show devices"])

    assert result.timed_out is True
    assert result.output == "Error: Command timed out after 10s"


@patch("gsm_watchdog.executor.subprocess.run")
def test_missing_binary_never_raises(mock_run):
    mock_run.side_effect = FileNotFoundError(2, "No such file or directory", "usbreset")

    result = CommandExecutor().run(["usbreset", "2c7c:0125"])

    assert not result.ok
    assert result.timed_out is False
    assert result.output.startswith("Error:")
