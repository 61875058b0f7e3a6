from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering for directory import runs."""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(seconds: float) -> str:
    """Render elapsed seconds without scientific notation; whole values lose '.0'."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(round(seconds, 3))


def render_summary_line(total_files: int, result: ProcessingResult) -> str:
    """Render the SUMMARY line of a run.

    Format:
    SUMMARY files={total}/{total} success={success} failed={failed}
    line_items={items} tools={tools} warnings={warnings} elapsed_sec={elapsed}

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ProcessingResult(
        ...     success_files=2, failed_files=1, total_line_items=40, total_tools=5,
        ...     total_warnings=1, start_time=start, end_time=end, elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(3, result)
        'SUMMARY files=3/3 success=2 failed=1 line_items=40 tools=5 warnings=1 elapsed_sec=2'
    """
    return (
        f"SUMMARY files={total_files}/{total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"line_items={result.total_line_items} "
        f"tools={result.total_tools} "
        f"warnings={result.total_warnings} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
