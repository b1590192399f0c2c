import sys
import time

import pytest

from clipforge.config.constants import STDERR_TAIL_CHARS
from clipforge.utils.exceptions import ConfigError, ProcessExitError, ProcessTimeoutError
from clipforge.utils.process_runner import run_process


def _python(code: str):
    return [sys.executable, "-c", code]


def test_streams_lines_and_captures_stdout():
    lines = []
    run_process(_python("import sys\nfor i in range(3): print(f'time=00:00:0{i}.00', file=sys.stderr)"),
                timeout=30, on_line=lines.append)
    assert lines == ["time=00:00:00.00", "time=00:00:01.00", "time=00:00:02.00"]

    result = run_process(_python("print('{\"ok\": true}')"), timeout=30, capture_stdout=True)
    assert result.returncode == 0
    assert result.stdout.strip() == '{"ok": true}'


def test_timeout_kills_the_child():
    start = time.monotonic()
    with pytest.raises(ProcessTimeoutError) as exc:
        run_process(_python("import time; time.sleep(30)"), timeout=1)

    assert time.monotonic() - start < 15
    assert exc.value.timeout == 1
    assert exc.value.command[0] == sys.executable
    assert isinstance(exc.value, TimeoutError)


def test_exit_error_carries_a_bounded_stderr_tail():
    code = "import sys\nfor i in range(400): print('x' * 40, i, file=sys.stderr)\nsys.exit(3)"
    with pytest.raises(ProcessExitError) as exc:
        run_process(_python(code), timeout=30)

    err = exc.value
    assert err.returncode == 3
    assert len(err.stderr_tail) == STDERR_TAIL_CHARS
    assert err.stderr_tail.endswith("399")
    assert "code 3" in str(err)


def test_line_callback_failure_is_raised_after_exit():
    def explode(line):
        raise ValueError(f"bad line: {line}")

    with pytest.raises(ValueError, match="bad line: hello"):
        run_process(_python("print('hello')"), timeout=30, on_line=explode)


def test_missing_binary_is_a_config_error():
    with pytest.raises(ConfigError, match="not found"):
        run_process(["definitely-not-a-real-binary-xyz"], timeout=5)
