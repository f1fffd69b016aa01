import io

import pytest

from ksysguard_nvsmi.protocol import BANNER, ERROR_DELIMITER, PROMPT
from ksysguard_nvsmi.session import Session, SessionState
from tests.conftest import completed, read_data


def run_session(router, text):
    stdout = io.StringIO()
    session = Session(router, io.StringIO(text), stdout)
    code = session.run()
    return code, session, stdout.getvalue()


def errors_in(output):
    return output.split(ERROR_DELIMITER)[1::2]


def test_banner_and_prompt_before_input(router):
    code, session, out = run_session(router, "")
    assert out == f"{BANNER}\n{PROMPT}"
    assert code == 0
    assert session.state is SessionState.CLOSED


def test_blank_lines_only_reprompt(nvidia_smi, router):
    _, _, out = run_session(router, "\n   \n")
    assert out == f"{BANNER}\n{PROMPT}{PROMPT}{PROMPT}"
    nvidia_smi.assert_not_called()


def test_quit_ends_session_without_prompt(nvidia_smi, router):
    code, session, out = run_session(router, "quit\ndevice0/pstate\n")
    assert code == 0
    assert out == f"{BANNER}\n{PROMPT}"
    assert session.state is SessionState.CLOSED
    nvidia_smi.assert_not_called()


def test_monitors(nvidia_smi, router):
    _, _, out = run_session(router, "monitors\n")
    lines = out.split("\n")
    assert lines[0] == BANNER
    assert lines[1] == PROMPT + "device0/clocks/current/graphics\tinteger"
    assert "device1/power/draw\tfloat" in lines
    assert out.endswith(PROMPT)


def test_scenario_values_and_metadata(nvidia_smi, router):
    nvidia_smi.return_value = completed(read_data("single_gpu.csv"))
    _, _, out = run_session(router, "device0/temperature/gpu\ndevice0/memory/used?\n")
    assert out == (
        f"{BANNER}\n{PROMPT}"
        "45\n" + PROMPT
        + "memory.used\t0\t8192\t MiB\n" + PROMPT
    )
    assert nvidia_smi.call_count == 1


def test_unknown_device(nvidia_smi, router):
    _, _, out = run_session(router, "device9/temperature/gpu\n")
    (error,) = errors_in(out)
    assert error.startswith("error: ")
    assert "unknown device" in error
    assert out.endswith(f"{ERROR_DELIMITER}\n{PROMPT}")


def test_invalid_request_keeps_session_alive(nvidia_smi, router):
    _, session, out = run_session(router, "bogus-input\ndevice0/pstate\n")
    (error,) = errors_in(out)
    assert "invalid request" in error
    assert "bogus-input" in error
    assert out.endswith(f"2\n{PROMPT}")
    assert out.count(PROMPT) == 3


def test_collection_failure_is_reported_per_request(nvidia_smi, router, clock):
    nvidia_smi.return_value = completed("", returncode=2, stderr="GPU access blocked\nby the OS\n")
    _, _, out = run_session(router, "monitors\nmonitors\n")
    errors = errors_in(out)
    assert len(errors) == 2
    assert "status 2" in errors[0]
    assert "\n" not in errors[0]
    assert errors[0] == errors[1]
    assert nvidia_smi.call_count == 1


def test_unexpected_exception_still_answers(router, monkeypatch):
    def explode(line):
        raise ZeroDivisionError("division by zero")

    monkeypatch.setattr(router, "query", explode)
    _, _, out = run_session(router, "device0/pstate\n")
    (error,) = errors_in(out)
    assert "ZeroDivisionError" in error
    assert out.endswith(PROMPT)


@pytest.mark.parametrize("line", ["monitors \n", "  quit\n"])
def test_commands_ignore_surrounding_whitespace(nvidia_smi, router, line):
    _, _, out = run_session(router, line)
    assert ERROR_DELIMITER not in out


def test_unknown_field_keeps_session_alive(nvidia_smi, router):
    _, _, out = run_session(router, "device0/foo-bar\ndevice0/pstate\n")
    (error,) = errors_in(out)
    assert "unknown field: 'foo-bar'" in error
    assert out.endswith(f"2\n{PROMPT}")
