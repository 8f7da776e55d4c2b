"""
Plain-text rendering of a pipeline report for terminals and log files.
"""
from .types import PipelineReport, PipelineState, StageStatus

RULE = "=" * 60

STATUS_LABELS = {
    StageStatus.SUCCESS: "[OK]  ",
    StageStatus.FAILED: "[FAIL]",
    StageStatus.SKIPPED: "[SKIP]",
    StageStatus.PENDING: "[----]",
    StageStatus.RUNNING: "[RUN] ",
}


def format_duration(total_ms: int) -> str:
    """Render milliseconds as ``Xm Ys``."""
    minutes, remainder = divmod(max(0, total_ms), 60000)
    return f"{minutes}m {remainder // 1000}s"


def format_report(report: PipelineReport) -> str:
    lines = [
        RULE,
        "PIPELINE EXECUTION REPORT",
        RULE,
        "",
        f"Run: {report.run_id}",
        f"Started: {report.timestamp.isoformat()}",
        f"Total Duration: {format_duration(report.total_duration_ms)}",
        "",
    ]

    for result in report.stages:
        label = STATUS_LABELS[result.status]
        lines.append(f"{label} {result.stage_name.ljust(25)} {result.duration_ms / 1000:.2f}s")
        if result.error:
            lines.append(f"       Error: {result.error}")

    lines.append("")
    if report.outcome is PipelineState.COMPLETED:
        lines.append("Pipeline completed successfully")
    else:
        failed = report.failed_stage
        name = failed.stage_name if failed else "unknown"
        lines.append(f"Pipeline aborted at stage '{name}'")
    lines.append(RULE)
    return "\n".join(lines)
