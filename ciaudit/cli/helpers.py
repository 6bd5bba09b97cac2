# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Shared helper functions for audit commands
"""

import asyncio
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from rich.console import Console
from rich.markup import escape

from ciaudit.classes import AuditReport, Finding, Severity
from ciaudit.config import AuditConfig, ConfigError, load_config, require_github_token
from ciaudit.utils.github_api_tools import GitHubApiError, GitHubClient
from ciaudit.utils.logging import log_report_summary

# Severity display colors
SEVERITY_COLORS: Dict[Severity, str] = {
    Severity.OK: 'green',
    Severity.INFO: 'white',
    Severity.WARNING: 'yellow',
    Severity.ERROR: 'red',
}

console = Console()


def print_success(message: str) -> None:
    """Print a standardized success message."""
    console.print(f'\n  [green]✓[/green] {message}\n')


def print_error(message: str) -> None:
    """Print a standardized error message."""
    console.print(f'\n  [red]✗[/red] {escape(message)}\n')


def format_finding(finding: Finding) -> str:
    """Render a finding as one Rich-markup line."""
    color = SEVERITY_COLORS.get(finding.severity, 'white')
    line = f'[{color}]{finding.severity.value:<7}[/{color}] {escape(finding.subject)}: {escape(finding.message)}'
    if finding.url:
        line += f' [dim]({escape(finding.url)})[/dim]'
    return line


def print_report(report: AuditReport, show_ok: bool = True) -> None:
    for finding in report.findings:
        if finding.severity is Severity.OK and not show_ok:
            continue
        console.print(format_finding(finding))

    summary = ', '.join(f'{report.count(severity)} {severity.value}' for severity in Severity)
    console.print(f'\n[bold]{report.name}[/bold]: checked {report.checked}, skipped {report.skipped} ({summary})')
    log_report_summary(report)


def resolve_config(**overrides: Any) -> Tuple[AuditConfig, str]:
    """Load config and token, exiting with a hint when either is unusable."""
    try:
        config = load_config(**overrides)
        token = require_github_token()
    except ConfigError as e:
        print_error(str(e))
        sys.exit(1)
    return config, token


def run_with_client(
    config: AuditConfig, token: str, audit: Callable[[GitHubClient], Awaitable[Any]]
) -> Any:
    """Open a client, run one audit coroutine to completion and turn fatal API errors into exit code 1."""

    async def _run() -> Any:
        async with GitHubClient(token, config.repository, max_retries=config.max_retries) as client:
            return await audit(client)

    try:
        return asyncio.run(_run())
    except GitHubApiError as e:
        status = f' (HTTP {e.status})' if e.status else ''
        print_error(f'GitHub API request failed{status}: {e} [{e.url}]')
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)


def finish(report: Optional[AuditReport], show_ok: bool = True) -> None:
    """Print the report and exit non-zero iff it holds an error finding."""
    if report is None:
        return
    print_report(report, show_ok=show_ok)
    sys.exit(report.exit_code)
