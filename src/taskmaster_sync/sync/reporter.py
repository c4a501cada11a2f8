"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_summary`` -- post-sync summary for the CLI.
- ``format_integrity_report`` -- state integrity findings.
- ``summary_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import IntegrityReport, SyncSummary


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_summary(summary: SyncSummary) -> str:
    """Format a sync summary as human-readable text.

    Per-task lines are only included when the run touched any task.

    Args:
        summary: The completed sync summary.

    Returns:
        Multi-line formatted string.
    """
    lines = ["Sync Summary", "============"]
    if summary.dry_run:
        lines.append("(DRY RUN -- no issues were created)")
    lines.append(f"Total tasks: {summary.total_tasks}")
    lines.append(f"Already synced: {summary.already_synced}")
    lines.append(f"Newly synced: {summary.newly_synced}")
    lines.append(f"Failed: {summary.failed}")
    if summary.stale_entries_removed:
        lines.append(f"Stale entries removed: {summary.stale_entries_removed}")
    if summary.skipped_due_to_duplicate_check:
        lines.append(
            "Skipped (duplicate check): "
            f"{summary.skipped_due_to_duplicate_check}"
        )

    if summary.results:
        lines.append("")
        lines.append("Results:")
        for r in summary.results:
            if r.success:
                info = f" -> {r.issue_url}" if r.issue_url else " (dry run)"
                line = f"  [OK] Task #{r.task_id}{info}"
                if r.error:
                    line += f" ({r.error})"
                lines.append(line)
            else:
                lines.append(f"  [FAIL] Task #{r.task_id}: {r.error}")

    return "\n".join(lines)


def format_integrity_report(report: IntegrityReport) -> str:
    if report.valid:
        return "State integrity: OK"
    lines = [f"State integrity: {len(report.issues)} problem(s)"]
    lines.extend(f"  - {issue}" for issue in report.issues)
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def summary_to_json(summary: SyncSummary) -> dict:
    """Convert a sync summary to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.

    Args:
        summary: The sync summary.

    Returns:
        Dict with counts and per-task details.
    """
    results_list = []
    for r in summary.results:
        entry: dict = {"task_id": r.task_id, "success": r.success}
        if r.issue_number is not None:
            entry["issue_number"] = r.issue_number
            entry["issue_url"] = r.issue_url
        if r.project_item_id:
            entry["project_item_id"] = r.project_item_id
        if r.initial_status:
            entry["initial_status"] = r.initial_status
        if r.skipped:
            entry["skipped"] = True
        if r.dry_run and r.mapped_issue is not None:
            entry["title"] = r.mapped_issue.issue_input.title
            entry["labels"] = list(r.mapped_issue.issue_input.labels)
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "dry_run": summary.dry_run,
        "counts": {
            "total": summary.total_tasks,
            "already_synced": summary.already_synced,
            "newly_synced": summary.newly_synced,
            "failed": summary.failed,
            "skipped_due_to_duplicate_check": summary.skipped_due_to_duplicate_check,
            "stale_entries_removed": summary.stale_entries_removed,
        },
        "results": results_list,
    }
