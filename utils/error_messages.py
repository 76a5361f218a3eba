"""
Clear, actionable error message formatting.

All error messages follow the pattern:
  ERROR: [What failed]
    Reason: [Why it failed]
    Action: [What user should do]
    Location: [Where the problem is]
"""

from pathlib import Path
from typing import Optional

# Captured process output longer than this is truncated in messages
MAX_DETAILS_LENGTH = 500


def format_error(
    what_failed: str,
    reason: str,
    action: str,
    location: Optional[Path] = None,
    details: Optional[str] = None
) -> str:
    """
    Format a clear, actionable error message.

    Args:
        what_failed: What operation failed (e.g., "Failed to apply scenario")
        reason: Why it failed (e.g., "docker-compose exited with code 1")
        action: What user should do (e.g., "Check the service names in the plan")
        location: Where the problem occurred (file path, directory, etc.)
        details: Optional additional details

    Returns:
        Formatted error message
    """
    lines = [f"ERROR: {what_failed}"]
    lines.append(f"  Reason: {reason}")
    lines.append(f"  Action: {action}")

    if location:
        lines.append(f"  Location: {location}")

    if details:
        lines.append(f"  Details: {details}")

    return "\n".join(lines)


def truncate_output(output: Optional[str], limit: int = MAX_DETAILS_LENGTH) -> Optional[str]:
    """Keep the tail of long process output, where the error usually is."""
    if not output:
        return None
    output = output.strip()
    if len(output) > limit:
        return "..." + output[-limit:]
    return output


def format_scale_error(scenario_name: str, compose_file: Path, returncode: int,
                       output: Optional[str] = None) -> str:
    """Format a failed scaling command."""
    return format_error(
        what_failed=f"Failed to apply scenario '{scenario_name}'",
        reason=f"docker-compose scale exited with code {returncode}",
        action="Check that the services in the plan exist in the compose file and the project is running",
        location=compose_file,
        details=truncate_output(output)
    )


def format_plan_error(plan_file: Path, reason: str) -> str:
    """Format an invalid chaos plan error."""
    return format_error(
        what_failed="Invalid chaos plan",
        reason=reason,
        action="Fix the plan file; every scenario needs at least one service=replicas pair",
        location=plan_file
    )


def format_retry_limit_error(retries: int, scenario_name: Optional[str]) -> str:
    """Format the error raised when the test command never recovers."""
    after = f"after scenario '{scenario_name}'" if scenario_name else "before the first scenario"
    return format_error(
        what_failed="Tests did not recover",
        reason=f"Test command failed {retries} times in a row {after}",
        action="Inspect the captured container logs, or raise --max-retries"
    )
