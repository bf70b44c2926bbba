#!/usr/bin/env python3
"""
Cortex Runner CLI - run one speech-to-text job through the Mediator
"""
import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cortex.client import AuthClient, JobClient
from cortex.config import Settings, load_settings
from cortex.errors import CortexError
from cortex.logger import setup_logging
from cortex.models import RemoteJobHandle, JobStatus
from worker.workflow import RunOutcome, WorkflowDriver

console = Console()


def _load(config, **overrides) -> Settings:
    try:
        return load_settings(config, **overrides)
    except CortexError as e:
        console.print(f"[red]Configuration error: {e.message}[/red]")
        for line in e.details.get("errors", []):
            console.print(f"  [yellow]{line}[/yellow]")
        sys.exit(1)


def _summary(outcome: RunOutcome) -> Table:
    table = Table(title="Transcription Run")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    status_style = "green" if outcome.succeeded else "red"
    table.add_row("Outcome", f"[{status_style}]{outcome.status.value}[/{status_style}]")
    if outcome.job is not None:
        table.add_row("Job", outcome.job.id)
        table.add_row("Job status", outcome.job.status.value)
    if outcome.failed_stage:
        table.add_row("Failed stage", outcome.failed_stage)
    if outcome.error is not None:
        table.add_row("Error", f"{type(outcome.error).__name__}: {outcome.error}")
    for fmt, path in outcome.downloaded.items():
        table.add_row(f"Result ({fmt.value})", str(path))
    if outcome.cleanup is not None:
        cleanup = "complete" if outcome.cleanup.complete else f"{len(outcome.cleanup.failed)} left behind"
        table.add_row("Cleanup", cleanup)
    else:
        table.add_row("Cleanup", "[yellow]not run[/yellow]")
    return table


@click.group()
@click.option('--config', 'config', type=click.Path(path_type=Path, dir_okay=False),
              help='JSON app config (defaults to $APP_CONFIG_FILE)')
@click.option('--log-level', default=None, help='Log level (DEBUG, INFO, ...)')
@click.option('--json-logs', is_flag=True, help='Emit JSON log lines')
@click.pass_context
def cli(ctx, config, log_level, json_logs):
    """Cortex Runner - Mediator speech-to-text workflow"""
    ctx.ensure_object(dict)
    ctx.obj['config'] = config
    ctx.obj['overrides'] = {'log_level': log_level, 'log_json': json_logs or None}


@cli.command()
@click.option('--cleanup-on-failure', is_flag=True,
              help='Delete staged objects even if the run fails before the job finishes')
@click.pass_context
def run(ctx, cleanup_on_failure):
    """Stage, transcribe, download and clean up one media file."""
    settings = _load(ctx.obj['config'], cleanup_on_failure=cleanup_on_failure or None, **ctx.obj['overrides'])
    setup_logging(settings.log_level, settings.log_json)

    try:
        driver = WorkflowDriver.from_settings(settings)
    except CortexError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)

    outcome = asyncio.run(driver.run())
    console.print(_summary(outcome))
    sys.exit(0 if outcome.succeeded else 1)


@cli.command()
@click.argument('job_id')
@click.pass_context
def status(ctx, job_id):
    """Show the current Mediator status of a job."""
    settings = _load(ctx.obj['config'], **ctx.obj['overrides'])
    setup_logging(settings.log_level, settings.log_json)

    async def fetch() -> RemoteJobHandle:
        async with AuthClient(settings.host, timeout=settings.request_timeout) as auth:
            token = await auth.authenticate(settings.client_key, settings.client_secret)
        async with JobClient(settings.host, timeout=settings.request_timeout) as jobs:
            jobs.set_token(token)
            return await jobs.fetch_status(RemoteJobHandle(id=job_id, status=JobStatus.UNKNOWN))

    try:
        handle = asyncio.run(fetch())
    except CortexError as e:
        console.print(f"[red]{type(e).__name__}: {e.message}[/red]")
        sys.exit(1)

    style = "green" if handle.status == JobStatus.COMPLETED else "red" if handle.status == JobStatus.FAILED else "yellow"
    console.print(f"Job {handle.id}: [{style}]{handle.status.value}[/{style}]")
    if handle.status_message:
        console.print(handle.status_message)


def main():
    """Main entry point for Cortex Runner CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
