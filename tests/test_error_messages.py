from pathlib import Path

from utils import error_messages as em


def test_format_error_with_optional_fields():
    msg = em.format_error(
        what_failed="Operation failed",
        reason="Because reasons",
        action="Do the thing",
        location=Path("/tmp/docker-compose.yml"),
        details="More detail",
    )
    assert "ERROR: Operation failed" in msg
    assert "Reason: Because reasons" in msg
    assert "Action: Do the thing" in msg
    assert "Location: " in msg
    assert "Details: More detail" in msg


def test_format_error_without_optional_fields():
    msg = em.format_error("Bad", "Nope", "Fix it")
    assert "Location" not in msg
    assert "Details" not in msg


def test_truncate_output_keeps_tail():
    out = em.truncate_output("a" * 10 + "b" * 600)
    assert out == "..." + "b" * 500
    assert em.truncate_output("  short \n") == "short"
    assert em.truncate_output("") is None
    assert em.truncate_output(None) is None


def test_format_scale_error():
    out = em.format_scale_error("kill-api", Path("/x/docker-compose.yml"), 1, "No such service: api")
    assert "Failed to apply scenario 'kill-api'" in out
    assert "exited with code 1" in out
    assert "Details: No such service: api" in out


def test_format_plan_error():
    out = em.format_plan_error(Path("plan.json"), "Plan has no scenarios")
    assert "Invalid chaos plan" in out
    assert "Reason: Plan has no scenarios" in out


def test_format_retry_limit_error():
    assert "failed 4 times in a row after scenario 'S2'" in em.format_retry_limit_error(4, "S2")
    assert "before the first scenario" in em.format_retry_limit_error(4, None)
