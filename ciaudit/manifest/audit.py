# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Merged pull request / manifest release reconciliation.

Pull requests are consumed newest-updated-first. Each one is either skipped
(no I/O) or checked: its merge_pr_<N> release is looked up and its manifest
assets validated. The scan ends when the stream is exhausted or a pull
request was last updated before the floor.
"""

from datetime import datetime, timedelta
from typing import AsyncIterable, List, Optional

import bittensor as bt

from ciaudit.classes import AuditReport, Finding, PullRequest, Severity
from ciaudit.config import AuditConfig
from ciaudit.manifest.eligibility import EligibilityPolicy, should_skip_pull_request
from ciaudit.manifest.release_cache import ReleaseCache
from ciaudit.manifest.validation import ManifestRules, validate_release_assets
from ciaudit.utils.datetime_utils import utc_now
from ciaudit.utils.github_api_tools import GitHubClient, GitHubNotFoundError


def scan_floor(config: AuditConfig, now: datetime) -> datetime:
    """Oldest update time a pull request may have and still be considered."""
    floor = config.tags_since
    if config.lookback_days is not None:
        floor = max(floor, now - timedelta(days=config.lookback_days))
    return floor


async def describe_missing_release(client: GitHubClient, pr: PullRequest) -> Finding:
    """Tell a missing release apart from a missing tag."""
    tag = pr.merge_tag
    try:
        await client.get_tag_ref(tag)
    except GitHubNotFoundError:
        return Finding(tag, Severity.WARNING, "no tag", pr.html_url)
    # there is a tag, just no release
    return Finding(tag, Severity.WARNING, "no release", pr.html_url)


async def check_pull_request(
    client: GitHubClient, pr: PullRequest, cache: ReleaseCache, rules: ManifestRules
) -> List[Finding]:
    tag = pr.merge_tag
    release = await cache.lookup(client, tag)
    if release is None:
        return [await describe_missing_release(client, pr)]

    findings = validate_release_assets(release, rules)
    if not findings:
        findings.append(Finding(tag, Severity.OK, "OK", release.html_url))
    return findings


async def run_manifest_audit(
    client: GitHubClient,
    pulls: AsyncIterable[PullRequest],
    config: AuditConfig,
    now: Optional[datetime] = None,
    cache: Optional[ReleaseCache] = None,
) -> AuditReport:
    """
    Reconcile merged pull requests with their manifest releases.

    Args:
        client (GitHubClient): API client
        pulls (AsyncIterable[PullRequest]): Pull requests, newest updated first
        config (AuditConfig): Run configuration
        now (Optional[datetime]): Reference time, defaults to the current time
        cache (Optional[ReleaseCache]): Preloaded cache; a new one is loaded when omitted

    Returns:
        AuditReport: Findings in scan order

    Raises:
        GitHubApiError: on any API failure other than an expected "not found"
    """
    now = now or utc_now()
    policy = EligibilityPolicy.from_config(config)
    rules = ManifestRules.from_config(config)
    floor = scan_floor(config, now)

    if cache is None:
        cache = await ReleaseCache().load(client, now - timedelta(days=config.release_cache_days))

    report = AuditReport(name="manifest")
    bt.logging.info(f"*****Checking PRs merged since {policy.tags_since.isoformat()}*****")

    async for pr in pulls:
        if pr.updated_at < floor:
            bt.logging.debug(f"PR #{pr.number} last updated {pr.updated_at.isoformat()}, below floor; done")
            break

        should_skip, skip_reason = should_skip_pull_request(pr, policy, now)
        if should_skip:
            report.skipped += 1
            bt.logging.debug(skip_reason)
            continue

        report.checked += 1
        report.extend(await check_pull_request(client, pr, cache, rules))

    bt.logging.info(
        f"Checked {report.checked} PRs ({report.skipped} skipped), "
        f"{cache.direct_lookups} release(s) fetched outside the cache"
    )
    return report
