from __future__ import annotations

from ..models.processing_result import ImportResult

"""SUMMARY line rendering for import runs."""


def _format_seconds(seconds: float) -> str:
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        # avoid scientific notation
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: ImportResult) -> str:
    """Render the one-line outcome of an import.

    Format::

        SUMMARY rows=<n> units=<n> added=<n> skipped=<n> errors=<n> elapsed_sec=<x>

    >>> render_summary_line(ImportResult(added=3, skipped=1, total_rows=2, total_units=4, elapsed_seconds=2.0))
    'SUMMARY rows=2 units=4 added=3 skipped=1 errors=0 elapsed_sec=2'
    """
    return (
        f"SUMMARY rows={result.total_rows} "
        f"units={result.total_units} "
        f"added={result.added} "
        f"skipped={result.skipped} "
        f"errors={len(result.errors)} "
        f"elapsed_sec={_format_seconds(result.elapsed_seconds)}"
    )
