"""Shell command runner, exercised with the running interpreter."""

from __future__ import annotations

import shlex
import sys

from weft.shell import CommandResult, ShellCommandRunner, combined_output


def py(code: str) -> str:
    return shlex.join([sys.executable, "-c", code])


class TestShellCommandRunner:
    """Batch execution: results per command, never an exception."""

    def test_stdout_captured_as_bytes(self):
        [res] = ShellCommandRunner().run([py("import sys; sys.stdout.write('-----BEGIN-----')")])
        assert res.ok
        assert res.stdout == b"-----BEGIN-----"

    def test_non_zero_exit(self):
        [res] = ShellCommandRunner().run([py("import sys; sys.stderr.write('boom'); sys.exit(3)")])
        assert not res.ok
        assert res.returncode == 3
        assert res.stderr == "boom"
        assert res.describe().endswith("boom")

    def test_missing_executable(self):
        [res] = ShellCommandRunner().run(["definitely-not-a-real-binary-weft arg"])
        assert not res.ok
        assert "executable not found" in res.error

    def test_unparseable_and_empty(self):
        bad, empty = ShellCommandRunner().run(["echo 'unterminated", "   "])
        assert "cannot parse" in bad.error
        assert empty.error == "empty command"

    def test_timeout(self):
        [res] = ShellCommandRunner(timeout=0.5).run([py("import time; time.sleep(5)")])
        assert not res.ok
        assert "timed out" in res.error

    def test_continues_after_failure_by_default(self):
        results = ShellCommandRunner().run([py("raise SystemExit(1)"), py("print('second')")])
        assert [r.ok for r in results] == [False, True]

    def test_stop_on_error(self):
        results = ShellCommandRunner(stop_on_error=True).run([py("raise SystemExit(1)"), py("print('x')")])
        assert len(results) == 1

    def test_order_preserved(self):
        results = ShellCommandRunner().run([py(f"print({i})") for i in range(3)])
        assert [r.stdout.strip() for r in results] == [b"0", b"1", b"2"]


class TestCombinedOutput:
    """One line per command."""

    def test_lines(self):
        out = combined_output([
            CommandResult("a", 0),
            CommandResult("b", 1, stderr="bad\n"),
            CommandResult("c", None, error="timed out after 1s"),
        ])
        assert out.splitlines() == ["ok: a", "failed: b: bad", "failed: c: timed out after 1s"]
