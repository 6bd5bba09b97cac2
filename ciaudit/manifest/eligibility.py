# The MIT License (MIT)
# Copyright © 2025 Entrius

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Optional, Tuple

from ciaudit.classes import PullRequest
from ciaudit.config import AuditConfig


@dataclass(frozen=True)
class EligibilityPolicy:
    """Which merged pull requests are expected to have a manifest release."""

    tags_since: datetime
    grace_window: timedelta
    base_branches: FrozenSet[str]
    ignored: FrozenSet[int] = field(default_factory=frozenset)

    @classmethod
    def from_config(cls, config: AuditConfig) -> 'EligibilityPolicy':
        return cls(
            tags_since=config.tags_since,
            grace_window=config.grace_window,
            base_branches=frozenset(config.base_branches),
            ignored=frozenset(config.ignore_prs),
        )


def should_skip_pull_request(
    pr: PullRequest, policy: EligibilityPolicy, now: datetime
) -> Tuple[bool, Optional[str]]:
    """
    Validate a pull request against the eligibility criteria, stopping at the first failure.

    Args:
        pr (PullRequest): Pull request to check
        policy (EligibilityPolicy): Cutoffs, branches and ignore-set
        now (datetime): Reference time for the grace window

    Returns:
        tuple[bool, Optional[str]]: (should_skip, skip_reason)
    """
    if pr.number in policy.ignored:
        return (True, f"Skipping PR #{pr.number} - in ignore list")

    if pr.base_ref not in policy.base_branches:
        return (True, f"Skipping PR #{pr.number} - targets '{pr.base_ref}'")

    if pr.merged_at is None:
        return (True, f"Skipping PR #{pr.number} - not merged")

    if pr.merged_at < policy.tags_since:
        return (True, f"Skipping PR #{pr.number} - merged before {policy.tags_since.isoformat()}")

    # artifact generation may still be running for recently updated PRs
    if pr.updated_at > now - policy.grace_window:
        return (True, f"Skipping PR #{pr.number} - updated within the last {policy.grace_window}")

    return (False, None)


def is_eligible(pr: PullRequest, policy: EligibilityPolicy, now: datetime) -> bool:
    should_skip, _ = should_skip_pull_request(pr, policy, now)
    return not should_skip
