from __future__ import annotations

from ..models.processing_result import ProcessingResult

"""SUMMARY line rendering for the batch intake command."""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Integral values without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(total_files: int, result: ProcessingResult) -> str:
    """Render the one-line run summary.

    Format::

        SUMMARY files={n} success={s} failed={f} items={i} invalid={v} duplicates={d} elapsed_sec={e}

    Examples:
        >>> from datetime import datetime, timezone
        >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        >>> result = ProcessingResult(
        ...     success_files=2, failed_files=0, total_items=40, invalid_items=1,
        ...     duplicates=0, start_time=t, end_time=t, elapsed_seconds=1.5,
        ... )
        >>> render_summary_line(2, result)
        'SUMMARY files=2 success=2 failed=0 items=40 invalid=1 duplicates=0 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY files={total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"items={result.total_items} "
        f"invalid={result.invalid_items} "
        f"duplicates={result.duplicates} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
