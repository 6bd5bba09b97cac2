# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
CI health of open pull requests and of default-branch commits.

Looks at GitHub check runs (Azure Pipelines) and commit statuses
(Taskcluster) and reports anything that looks stuck or broken, ignoring
runs that only recently started.
"""

from datetime import datetime, timedelta
from typing import AsyncIterable, List, Optional

import bittensor as bt

from ciaudit.classes import AuditReport, CheckRun, CommitStatus, Finding, PullRequest, Severity
from ciaudit.constants import (
    AZURE_PIPELINES_CHECK_NAME,
    AZURE_PIPELINES_SINCE,
    CHECKS_LOOKBACK_DAYS,
    FINISHED_STATUS_STATES,
    PASSING_CHECK_CONCLUSIONS,
    PENDING_CHECK_MAX_AGE,
    PENDING_STATUS_MAX_AGE,
    TASKCLUSTER_PR_CONTEXT,
    TASKCLUSTER_PUSH_CONTEXT,
)
from ciaudit.utils.datetime_utils import format_github_timestamp
from ciaudit.utils.github_api_tools import GitHubClient


def default_since(now: datetime, days: int = CHECKS_LOOKBACK_DAYS) -> datetime:
    # GitHub does not support fractional seconds
    return (now - timedelta(days=days)).replace(microsecond=0)


def dedupe_statuses(statuses: List[CommitStatus]) -> List[CommitStatus]:
    """Keep only the latest status per context.

    Statuses arrive newest first, so the first one seen for a context wins.
    """
    seen_contexts = set()
    latest = []
    for status in statuses:
        if status.context in seen_contexts:
            continue
        seen_contexts.add(status.context)
        latest.append(status)
    return latest


def is_recently_pending_check(check: CheckRun, now: datetime, max_age: int = PENDING_CHECK_MAX_AGE) -> bool:
    if check.conclusion is None and check.updated_at is not None:
        age = (now - check.updated_at).total_seconds()
        return age < max_age
    return False


def is_recently_pending_status(status: CommitStatus, now: datetime, max_age: int = PENDING_STATUS_MAX_AGE) -> bool:
    if status.state == 'pending' and status.updated_at is not None:
        age = (now - status.updated_at).total_seconds()
        return age < max_age
    return False


async def get_check_runs(client: GitHubClient, ref: str) -> List[CheckRun]:
    return [CheckRun.from_github_response(raw) for raw in await client.list_check_runs(ref)]


async def get_latest_statuses(client: GitHubClient, ref: str) -> List[CommitStatus]:
    statuses = [CommitStatus.from_github_response(raw) for raw in await client.list_statuses(ref)]
    return dedupe_statuses(statuses)


def _find_check(checks: List[CheckRun], name: str) -> Optional[CheckRun]:
    return next((check for check in checks if check.name == name), None)


def _find_status(statuses: List[CommitStatus], context: str) -> Optional[CommitStatus]:
    return next((status for status in statuses if status.context == context), None)


async def check_pull_request_ci(client: GitHubClient, pr: PullRequest, now: datetime) -> List[Finding]:
    """
    Check the Azure Pipelines run and the Taskcluster status of a PR's head commit.

    Returns:
        List[Finding]: Problems found, empty when CI looks healthy
    """
    subject = f"#{pr.number}"
    findings: List[Finding] = []
    if not pr.head_sha:
        return [Finding(subject, Severity.WARNING, "no head commit", pr.html_url)]

    checks = await get_check_runs(client, pr.head_sha)
    azure_check = _find_check(checks, AZURE_PIPELINES_CHECK_NAME)
    if azure_check:
        if not is_recently_pending_check(azure_check, now) and azure_check.status != 'completed':
            # Likely infra problem
            findings.append(Finding(subject, Severity.ERROR, azure_check.status, azure_check.details_url))
    elif pr.created_at is None or pr.created_at >= AZURE_PIPELINES_SINCE:
        # older PRs with no checks most likely just got a comment, so no CI ran
        findings.append(Finding(subject, Severity.WARNING, f"no {AZURE_PIPELINES_CHECK_NAME} check", pr.html_url))

    statuses = await get_latest_statuses(client, pr.head_sha)
    tc_status = _find_status(statuses, TASKCLUSTER_PR_CONTEXT)
    if tc_status:
        if not is_recently_pending_status(tc_status, now) and tc_status.state not in FINISHED_STATUS_STATES:
            # Likely infra problem
            findings.append(Finding(subject, Severity.ERROR, tc_status.state, tc_status.target_url))
    else:
        findings.append(Finding(subject, Severity.WARNING, f"no {TASKCLUSTER_PR_CONTEXT} status", pr.html_url))

    return findings


async def audit_open_pull_requests(
    client: GitHubClient, pulls: AsyncIterable[PullRequest], since: datetime, now: datetime
) -> AuditReport:
    """
    Check CI of open PRs updated after `since`.

    Args:
        pulls: Pull requests, newest updated first; the scan stops at the first one older than `since`
    """
    report = AuditReport(name="pull request checks")

    async for pr in pulls:
        if pr.updated_at <= since:
            break
        if pr.state != 'open':
            report.skipped += 1
            continue

        report.checked += 1
        findings = await check_pull_request_ci(client, pr, now)
        if findings:
            report.extend(findings)
        else:
            report.add(Finding(f"#{pr.number}", Severity.OK, "OK", pr.html_url))

    bt.logging.info(f"Found {report.checked} open PRs updated since {format_github_timestamp(since)}")
    return report


async def audit_default_branch(client: GitHubClient, since: datetime, now: datetime) -> AuditReport:
    """Report failing check runs and push statuses of commits since `since`."""
    report = AuditReport(name="default branch checks")
    commits = await client.list_commits(format_github_timestamp(since))
    bt.logging.info(f"Found {len(commits)} commits since {format_github_timestamp(since)}")

    for commit in commits:
        sha = commit['sha']
        report.checked += 1
        subject = sha[:12]
        before = len(report.findings)

        for check in await get_check_runs(client, sha):
            if check.conclusion in PASSING_CHECK_CONCLUSIONS:
                continue
            if is_recently_pending_check(check, now):
                continue
            report.add(Finding(subject, Severity.ERROR, f"{check.name}: {check.conclusion}", check.details_url))

        statuses = await get_latest_statuses(client, sha)
        push_status = _find_status(statuses, TASKCLUSTER_PUSH_CONTEXT)
        if push_status and not is_recently_pending_status(push_status, now) and push_status.state != 'success':
            report.add(
                Finding(subject, Severity.ERROR, f"{TASKCLUSTER_PUSH_CONTEXT}: {push_status.state}", push_status.target_url)
            )

        if len(report.findings) == before:
            report.add(Finding(subject, Severity.OK, "OK"))

    return report
