# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Azure Pipelines check-run report for open pull requests.
"""

from datetime import datetime

import bittensor as bt

from ciaudit.classes import AuditReport, CheckRun, Finding, Severity
from ciaudit.constants import AZURE_PIPELINES_CHECK_NAME, SECONDS_PER_MINUTE
from ciaudit.utils.datetime_utils import format_github_timestamp, parse_github_timestamp
from ciaudit.utils.github_api_tools import GitHubClient


def open_pull_request_query(repository: str, since: datetime) -> str:
    return f"repo:{repository} is:pr is:open updated:>{format_github_timestamp(since)}"


def describe_check_run(check: CheckRun, now: datetime) -> str:
    if check.status != 'completed':
        if check.started_at is None:
            return check.status
        minutes_ago = int((now - check.started_at).total_seconds() // SECONDS_PER_MINUTE)
        return f"{check.status} (started {minutes_ago} min ago)"
    return str(check.conclusion)


async def run_azure_report(client: GitHubClient, since: datetime, now: datetime) -> AuditReport:
    """
    Report the Azure Pipelines run on the last commit of every open PR updated after `since`.

    Args:
        client (GitHubClient): API client
        since (datetime): Only PRs updated after this are listed; PRs created before it
            with no check run are skipped, since no CI ran for them
        now (datetime): Reference time for "started N min ago"

    Returns:
        AuditReport: info findings with the run state, warnings for missing runs
    """
    report = AuditReport(name="azure pipelines")
    results = await client.search_issues(open_pull_request_query(client.repository, since))
    bt.logging.info(f"Found {len(results)} open PRs updated since {format_github_timestamp(since)}")

    for pr in results:
        number = pr['number']
        subject = f"#{number}"
        commits = await client.list_pull_commits(number)
        if not commits:
            report.skipped += 1
            continue

        # only look at the final commit
        ref = commits[-1]['sha']
        checks = [CheckRun.from_github_response(raw) for raw in await client.list_check_runs(ref)]
        azure_run = next((check for check in checks if check.name == AZURE_PIPELINES_CHECK_NAME), None)

        if azure_run is None:
            if parse_github_timestamp(pr['created_at']) < since:
                report.skipped += 1
                continue
            report.checked += 1
            report.add(Finding(subject, Severity.WARNING, "no check", pr.get('html_url')))
            continue

        report.checked += 1
        report.add(Finding(subject, Severity.INFO, describe_check_run(azure_run, now), azure_run.details_url))

    return report
