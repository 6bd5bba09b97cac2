# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
ciaudit CLI - Main entry point

Usage:
    ciaudit manifest         - Check merge_pr_* releases and their manifests
    ciaudit checks           - Check CI of open PRs (or of default-branch commits)
    ciaudit azure            - Report Azure Pipelines runs of open PRs
    ciaudit update-data      - Refresh the local snapshot of pulls, tags and releases
    ciaudit config           - Show/set CLI configuration
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

import click

from ciaudit import __version__
from ciaudit.checks.azure import run_azure_report
from ciaudit.checks.ci_status import audit_default_branch, audit_open_pull_requests, default_since
from ciaudit.cli.config_commands import config_group
from ciaudit.cli.helpers import finish, print_success, resolve_config, run_with_client
from ciaudit.constants import AZURE_PIPELINES_SINCE, CHECKS_LOOKBACK_DAYS
from ciaudit.manifest.audit import run_manifest_audit
from ciaudit.sources import SOURCE_LOCAL, SOURCES, api_pull_requests, local_pull_requests
from ciaudit.store.local_store import LocalStore
from ciaudit.utils.datetime_utils import utc_now
from ciaudit.utils.logging import configure_logging


def source_options(func):
    """Options shared by every command that reads from GitHub or the snapshot."""
    func = click.option('--data-dir', type=click.Path(file_okay=False), default=None, help='Local snapshot directory')(func)
    func = click.option(
        '--source',
        type=click.Choice(SOURCES),
        default='api',
        show_default=True,
        help='Where pull requests are read from',
    )(func)
    func = click.option('--repo', 'repository', default=None, help='Repository in owner/name format')(func)
    return func


def pull_request_stream(client, config, source: str, state: str):
    if source == SOURCE_LOCAL:
        return local_pull_requests(LocalStore(config.data_dir), state=state)
    return api_pull_requests(client, state=state)


@click.group()
@click.version_option(version=__version__, prog_name='ciaudit')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def cli(debug: bool):
    """ciaudit - Audit CI results and per-merge release artifacts on GitHub"""
    configure_logging(debug)


@cli.command('manifest')
@source_options
@click.option('--tags-since', default=None, help='Only PRs merged at or after this time (ISO 8601)')
@click.option('--grace-minutes', 'grace_window_minutes', type=int, default=None, help='Skip PRs updated this recently')
@click.option('--release-cache-days', type=int, default=None, help='Age limit of the bulk release scan')
@click.option('--lookback-days', type=int, default=None, help='Stop at PRs last updated before this many days ago')
@click.option('--min-size', 'min_manifest_size', type=int, default=None, help='Minimum manifest size in bytes')
@click.option('--ignore', 'ignore_prs', type=int, multiple=True, help='PR number to ignore (repeatable)')
@click.option('--quiet', is_flag=True, help='Do not print OK lines')
def manifest(
    repository: Optional[str],
    source: str,
    data_dir: Optional[str],
    tags_since: Optional[str],
    grace_window_minutes: Optional[int],
    release_cache_days: Optional[int],
    lookback_days: Optional[int],
    min_manifest_size: Optional[int],
    ignore_prs: Tuple[int, ...],
    quiet: bool,
):
    """Check that every merged PR has a merge_pr_<N> release with valid manifests.

    \b
    Examples:
        ciaudit manifest
        ciaudit manifest --lookback-days 30 --quiet
        ciaudit manifest --source local --data-dir data
    """
    config, token = resolve_config(
        repository=repository,
        data_dir=data_dir,
        tags_since=tags_since,
        grace_window_minutes=grace_window_minutes,
        release_cache_days=release_cache_days,
        lookback_days=lookback_days,
        min_manifest_size=min_manifest_size,
        ignore_prs=list(ignore_prs) or None,
    )

    async def audit(client):
        pulls = pull_request_stream(client, config, source, state='closed')
        return await run_manifest_audit(client, pulls, config)

    finish(run_with_client(config, token, audit), show_ok=not quiet)


@cli.command('checks')
@source_options
@click.option('--days', type=int, default=CHECKS_LOOKBACK_DAYS, show_default=True, help='How far back to look')
@click.option('--default-branch', is_flag=True, help='Check commits on the default branch instead of open PRs')
def checks(repository: Optional[str], source: str, data_dir: Optional[str], days: int, default_branch: bool):
    """Report stuck or missing CI runs.

    \b
    Examples:
        ciaudit checks
        ciaudit checks --default-branch --days 2
    """
    config, token = resolve_config(repository=repository, data_dir=data_dir)
    now = utc_now()
    since = default_since(now, days)

    async def audit(client):
        if default_branch:
            return await audit_default_branch(client, since, now)
        pulls = pull_request_stream(client, config, source, state='open')
        return await audit_open_pull_requests(client, pulls, since, now)

    finish(run_with_client(config, token, audit))


@cli.command('azure')
@click.option('--repo', 'repository', default=None, help='Repository in owner/name format')
@click.option(
    '--since',
    type=click.DateTime(formats=['%Y-%m-%dT%H:%M:%SZ', '%Y-%m-%d']),
    default=None,
    help='Only PRs updated after this time (UTC)',
)
def azure(repository: Optional[str], since: Optional[datetime]):
    """Show the Azure Pipelines run of every open PR."""
    config, token = resolve_config(repository=repository)
    since_utc = since.replace(tzinfo=timezone.utc) if since else AZURE_PIPELINES_SINCE

    async def audit(client):
        return await run_azure_report(client, since_utc, utc_now())

    finish(run_with_client(config, token, audit))


@cli.command('update-data')
@click.option('--repo', 'repository', default=None, help='Repository in owner/name format')
@click.option('--data-dir', type=click.Path(file_okay=False), default=None, help='Local snapshot directory')
@click.option(
    '--only',
    type=click.Choice([collection.name for collection in LocalStore.COLLECTIONS]),
    multiple=True,
    help='Refresh only these collections',
)
def update_data(repository: Optional[str], data_dir: Optional[str], only: Tuple[str, ...]):
    """Download pulls, tags and releases into the local snapshot."""
    config, token = resolve_config(repository=repository, data_dir=data_dir)
    store = LocalStore(config.data_dir)
    collections = [collection for collection in LocalStore.COLLECTIONS if not only or collection.name in only]

    async def refresh(client):
        return await store.update(client, collections)

    counts = run_with_client(config, token, refresh)
    written = ', '.join(f'{count} {name}' for name, count in counts.items())
    print_success(f'Wrote {written} records to {store.data_dir}')


# Register config group
cli.add_command(config_group)


def main():
    """Main entry point for the CLI"""
    cli()


if __name__ == '__main__':
    main()
