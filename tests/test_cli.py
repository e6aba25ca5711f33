"""End-to-end tests for the multirun command line."""

# Standard library imports
import json
import signal
import subprocess
import sys

# Third-party imports
import pytest
from click.testing import CliRunner

# Local/package imports
from multirun.cli import cli, main

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses /bin/sh scripts")


def test_serial_success(workspace):
    first = workspace.marker_script("first")
    second = workspace.marker_script("second")
    plan_path = workspace.write_plan(
        [
            workspace.command(first, tag="//pkg:first"),
            workspace.command(second, tag="//pkg:second"),
        ],
        jobs=1,
        print_command=True,
    )

    proc = workspace.run(plan_path)

    assert proc.returncode == 0, proc.stderr
    assert proc.stdout == b"//pkg:first\nfirst ran\n//pkg:second\nsecond ran\n"


def test_serial_failure_exit_code_and_diagnostics(workspace):
    failing = workspace.marker_script("failing", exit_code=5)
    after = workspace.marker_script("after")
    plan_path = workspace.write_plan(
        [workspace.command(failing, tag="//pkg:failing"), workspace.command(after)],
        jobs=1,
    )

    proc = workspace.run(plan_path)

    assert proc.returncode == 1
    assert not workspace.ran("after")
    assert b"'//pkg:failing' failed with exit code 5" in proc.stderr


def test_keep_going_still_exits_nonzero(workspace):
    failing = workspace.marker_script("failing", exit_code=1)
    after = workspace.marker_script("after")
    plan_path = workspace.write_plan(
        [workspace.command(failing), workspace.command(after)],
        jobs=1,
        keep_going=True,
    )

    proc = workspace.run(plan_path)

    assert proc.returncode == 1
    assert b"after ran" in proc.stdout


def test_concurrent_buffered_run(workspace):
    hello = workspace.script("hello.sh", "echo hello")
    hello2 = workspace.script("hello2.sh", "echo hello2")
    plan_path = workspace.write_plan(
        [
            workspace.command(hello, tag="//pkg:hello"),
            workspace.command(hello2, tag="//pkg:hello2"),
        ],
        jobs=0,
        buffer_output=True,
        print_command=True,
    )

    proc = workspace.run(plan_path)

    assert proc.returncode == 0, proc.stderr
    out = proc.stdout
    assert b"//pkg:hello\nhello\n" in out
    assert b"//pkg:hello2\nhello2\n" in out


def test_forward_stdin(workspace):
    echo_one = workspace.script(
        "echo_one.sh", 'while IFS= read -r line; do echo "one: $line"; done'
    )
    echo_two = workspace.script(
        "echo_two.sh", 'while IFS= read -r line; do echo "two: $line"; done'
    )
    plan_path = workspace.write_plan(
        [workspace.command(echo_one), workspace.command(echo_two)],
        jobs=0,
        buffer_output=True,
        forward_stdin=True,
    )

    proc = workspace.run(plan_path, input=b"ping\n")

    assert proc.returncode == 0, proc.stderr
    assert sorted(proc.stdout.splitlines()) == [b"one: ping", b"two: ping"]


def test_forward_stdin_exits_cleanly_while_stdin_stays_open(workspace):
    quick = workspace.script("quick.sh", "exit 0")
    plan_path = workspace.write_plan(
        [workspace.command(quick)], jobs=0, forward_stdin=True
    )

    proc = workspace.start(
        plan_path,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    try:
        # Parent stdin is never closed while the engine shuts down.
        returncode = proc.wait(timeout=30)
        stderr = proc.stderr.read()
    finally:
        proc.stdin.close()
        proc.stdout.close()
        proc.stderr.close()

    assert returncode == 0, stderr
    assert b"Fatal Python error" not in stderr


@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_interrupt_is_forwarded_to_children(workspace, signum):
    waiter = workspace.script(
        "waiter.sh",
        "trap 'echo interrupted; exit 7' INT TERM\n"
        'touch "$MARKER_DIR/waiter"\n'
        "while true; do sleep 0.05; done",
    )
    plan_path = workspace.write_plan(
        [workspace.command(waiter, tag="//pkg:waiter")],
        jobs=0,
        buffer_output=True,
    )

    proc = workspace.start(
        plan_path, stdout=subprocess.PIPE, stderr=subprocess.PIPE
    )
    try:
        workspace.wait_for("waiter")
        proc.send_signal(signum)
        stdout, stderr = proc.communicate(timeout=30)
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.communicate()

    assert proc.returncode == 1
    assert stdout == b"interrupted\n"
    assert b"'//pkg:waiter' failed with exit code 7" in stderr


def test_extra_arguments_pass_through_verbatim(workspace):
    show = workspace.script("show.sh", 'for a in "$@"; do echo "arg:$a"; done')
    plan_path = workspace.write_plan(
        [workspace.command(show, args=["foo"])], jobs=1
    )

    proc = workspace.run(plan_path, "--debug", "bar baz", "--help")

    assert proc.returncode == 0, proc.stderr
    assert proc.stdout == b"arg:foo\narg:--debug\narg:bar baz\narg:--help\n"


def test_malformed_instructions(workspace):
    plan_path = workspace.root / "instructions.json"
    plan_path.write_text("{not json")

    proc = workspace.run(plan_path)

    assert proc.returncode == 1
    assert b"CONFIG_ERROR" in proc.stderr
    assert proc.stdout == b""


def test_missing_instructions_file(workspace):
    proc = workspace.run(workspace.root / "missing.json")

    assert proc.returncode == 1
    assert b"Instructions file not found" in proc.stderr


def test_unresolvable_command_runs_nothing(workspace):
    good = workspace.marker_script("good")
    plan_path = workspace.write_plan(
        [workspace.command(good), workspace.command("missing.sh")], jobs=0
    )

    proc = workspace.run(plan_path)

    assert proc.returncode == 1
    assert b"RESOLUTION_ERROR" in proc.stderr
    assert not workspace.ran("good")


def test_missing_argument_is_a_usage_error(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1
    assert "Missing argument" in capsys.readouterr().err


def test_main_exit_codes(workspace, monkeypatch):
    monkeypatch.setenv("RUNFILES_DIR", str(workspace.runfiles_dir))
    ok = workspace.script("ok.sh", "exit 0")
    bad = workspace.script("bad.sh", "exit 9")

    plan_path = workspace.write_plan([workspace.command(ok)])
    with pytest.raises(SystemExit) as exc_info:
        main([str(plan_path)])
    assert exc_info.value.code == 0

    plan_path = workspace.write_plan([workspace.command(ok), workspace.command(bad)])
    with pytest.raises(SystemExit) as exc_info:
        main([str(plan_path)])
    assert exc_info.value.code == 1


def test_cli_runner_reports_config_errors(tmp_path):
    plan_path = tmp_path / "instructions.json"
    plan_path.write_text(json.dumps({"commands": [], "jobs": "many"}))

    result = CliRunner().invoke(cli, [str(plan_path)])

    assert result.exit_code == 1
    assert "CONFIG_ERROR" in result.output


def test_cli_runner_empty_plan_succeeds(tmp_path):
    plan_path = tmp_path / "instructions.json"
    plan_path.write_text(json.dumps({"commands": []}))

    result = CliRunner().invoke(cli, ["--debug", str(plan_path)])

    assert result.exit_code == 0
