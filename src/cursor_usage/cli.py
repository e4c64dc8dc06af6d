"""CLI entry point for cursor-usage."""

import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path

import click
from jinja2 import TemplateError

from . import window as windows
from .billing import load_billing_records
from .config import Settings
from .extractor import ConversationExtractor
from .report import write_dashboard, write_transcripts
from .stats import build_stats, us_datetime

logger = logging.getLogger(__name__)

DATE = click.DateTime(formats=["%Y-%m-%d"])


def select_window(
    last_month: bool,
    this_month: bool,
    date_from: datetime | None,
    date_to: datetime | None,
    yesterday: bool,
    date: datetime | None,
    now: datetime | None = None,
) -> windows.TimeWindow:
    """Pick the reporting window; the first flag that applies wins."""
    if last_month:
        return windows.last_month(now)
    if this_month:
        return windows.this_month(now)
    if date_from and date_to:
        return windows.date_range(date_from.date(), date_to.date())
    if yesterday:
        return windows.yesterday(now)
    if date:
        return windows.for_date(date.date())
    return windows.today(now)


def _format_ms(ts_ms: int) -> str:
    return us_datetime(datetime.fromtimestamp(ts_ms / 1000))


@click.command()
@click.option("--last-month", is_flag=True, help="Report on the previous calendar month.")
@click.option("--this-month", is_flag=True, help="Report from the 1st of this month to today.")
@click.option("--from", "date_from", type=DATE, help="Start date (YYYY-MM-DD), used with --to.")
@click.option("--to", "date_to", type=DATE, help="End date (YYYY-MM-DD), used with --from.")
@click.option("--yesterday", is_flag=True, help="Report on yesterday.")
@click.option("--date", type=DATE, help="Report on a single day (YYYY-MM-DD).")
@click.option(
    "--csv", "csv_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Usage export CSV from the Cursor dashboard to attribute API usage.",
)
@click.option(
    "--output", "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output folder (deleted and recreated on every run).",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def main(last_month, this_month, date_from, date_to, yesterday, date, csv_path, output_dir, verbose):
    """Export Cursor chat history and build an HTML usage report."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if bool(date_from) != bool(date_to):
        raise click.UsageError("--from and --to must be given together.")

    settings = Settings.from_env(output_dir)
    window = select_window(last_month, this_month, date_from, date_to, yesterday, date)

    click.echo("Cursor Usage Analyzer\n")

    if not settings.global_storage.is_dir():
        click.echo(f"Cursor storage not found: {settings.global_storage}", err=True)
        sys.exit(1)

    click.echo(f"Analyzing: {window.label}")
    click.echo(f"Period: {_format_ms(window.start_ms)} - {_format_ms(window.end_ms)}\n")

    try:
        if settings.output_dir.exists():
            shutil.rmtree(settings.output_dir)
        settings.chats_dir.mkdir(parents=True)
    except OSError as e:
        logger.exception("Could not prepare output folder %s", settings.output_dir)
        click.echo(f"Error preparing output folder: {e}", err=True)
        return

    billing_records = None
    if csv_path:
        click.echo(f"Loading usage export: {csv_path}")
        billing_records = load_billing_records(csv_path)
        click.echo(f"Loaded {len(billing_records)} usage records")

    click.echo("Extracting conversations...")
    conversations = ConversationExtractor(settings).extract(window, billing_records)
    click.echo(f"Found {len(conversations)} conversations\n")

    if not conversations:
        click.echo("No conversations found in specified period.")
        return

    try:
        click.echo("Exporting conversations...")
        write_transcripts(conversations, settings, window.label)

        click.echo("Generating statistics...")
        stats = build_stats(conversations, window)

        click.echo("Generating HTML report...")
        report_path = write_dashboard(stats, settings, window.label)
    except (OSError, TemplateError) as e:
        logger.exception("Report generation failed")
        click.echo(f"Error generating report: {e}", err=True)
        return

    click.echo("\nDone!\n")
    click.echo(f"Export folder: {settings.output_dir}")
    click.echo(f"Conversations: {len(conversations)}")
    if billing_records:
        click.echo(f"API calls matched: {stats.total_api_calls}")
    click.echo(f"Report: {report_path}")
