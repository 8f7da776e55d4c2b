"""
Command line entry point: ``seo-pipeline``.

Usage:
    seo-pipeline                                  # run with pipeline.config.json or defaults
    seo-pipeline run --config my.config.json      # run with an explicit config
    seo-pipeline run --database-url sqlite+aiosqlite:///runs.db
    seo-pipeline report                           # print the last saved report
    seo-pipeline report --database-url ... -n 5   # print recent runs from a database
"""
import argparse
import asyncio
import sys
from typing import Optional, Sequence, TextIO

from .. import settings
from ..recovery import FailureSupervisor
from ..recovery.supervisor import ORIGIN_STARTUP
from ..structured_logger import configure_logging, create_logger
from .config import load_pipeline_config, resolve_stages
from .orchestrator import PipelineOrchestrator
from .persistence import CompositeReportSink, JsonFileReportSink, SQLAlchemyReportSink, WebhookReportSink
from .report import format_report
from .stages import StageRegistry, default_registry

logger = create_logger("cli")

COMMANDS = ("run", "report")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--report-path", default=settings.REPORT_PATH,
        help="JSON file the latest report is written to"
    )
    common.add_argument(
        "--database-url", default=settings.REPORT_DATABASE_URL,
        help="SQLAlchemy URL for storing every run"
    )
    common.add_argument(
        "--log-level", default=settings.LOG_LEVEL,
        choices=["debug", "info", "warn", "error", "fatal"],
        help="Minimum log level"
    )
    common.add_argument(
        "--log-format", default=settings.LOG_FORMAT,
        choices=["pretty", "json"],
        help="Log output format"
    )

    parser = argparse.ArgumentParser(
        prog="seo-pipeline",
        description="Run the SEO content pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", parents=[common], help="Run the pipeline (default)")
    run_parser.add_argument(
        "--config", default=settings.CONFIG_PATH,
        help="Path to the pipeline config file"
    )
    run_parser.add_argument(
        "--webhook-url", default=settings.REPORT_WEBHOOK_URL,
        help="Endpoint the report is POSTed to"
    )

    report_parser = subparsers.add_parser("report", parents=[common], help="Print saved reports")
    report_parser.add_argument(
        "-n", "--limit", type=int, default=1,
        help="Number of recent runs to print when reading from a database"
    )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in ("-h", "--help")):
        argv = ["run", *argv]
    return create_argument_parser().parse_args(argv)


def build_report_sink(args: argparse.Namespace) -> CompositeReportSink:
    sinks = [JsonFileReportSink(args.report_path)]
    if args.database_url:
        sinks.append(SQLAlchemyReportSink(args.database_url))
    if getattr(args, "webhook_url", None):
        sinks.append(WebhookReportSink(args.webhook_url))
    return CompositeReportSink(sinks)


async def run_pipeline(
    args: argparse.Namespace,
    supervisor: Optional[FailureSupervisor] = None,
    registry: Optional[StageRegistry] = None,
    out: Optional[TextIO] = None,
) -> int:
    """Run the configured stages; returns the process exit status."""
    out = out or sys.stdout
    if supervisor is not None:
        supervisor.attach_loop(asyncio.get_running_loop())

    try:
        config = load_pipeline_config(args.config)
        stages = resolve_stages(config, registry or default_registry())
        sink = build_report_sink(args)
    except Exception as e:
        if supervisor is not None:
            supervisor.handle_exception(e, ORIGIN_STARTUP)
        else:
            logger.error("Invalid pipeline configuration", e)
        return 1

    orchestrator = PipelineOrchestrator(report_sink=sink, config_snapshot=config.to_dict())
    try:
        await orchestrator.run(stages)
        status = 0
    except Exception as e:
        logger.error("Pipeline failed", e)
        status = 1
    finally:
        await sink.close()

    if orchestrator.report is not None:
        print(format_report(orchestrator.report), file=out)
    return status


async def show_reports(args: argparse.Namespace, out: Optional[TextIO] = None) -> int:
    """Print saved reports; returns 1 when there is nothing to show."""
    out = out or sys.stdout

    if args.database_url:
        sink = SQLAlchemyReportSink(args.database_url)
        try:
            reports = await sink.list_recent(limit=args.limit)
        finally:
            await sink.close()
    else:
        report = await JsonFileReportSink(args.report_path).load()
        reports = [report] if report is not None else []

    if not reports:
        print("No pipeline reports found", file=out)
        return 1

    print("\n\n".join(format_report(report) for report in reports), file=out)
    return 0


def main(argv: Optional[Sequence[str]] = None, supervisor: Optional[FailureSupervisor] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_format)

    if args.command == "report":
        return asyncio.run(show_reports(args))

    supervisor = supervisor or FailureSupervisor()
    installed = supervisor.install()
    try:
        return asyncio.run(run_pipeline(args, supervisor=supervisor))
    except Exception as e:
        # The hooks are restored before an exception could leave main
        supervisor.handle_exception(e)
        return 1
    finally:
        if installed:
            supervisor.uninstall()


if __name__ == "__main__":
    sys.exit(main())
