from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ciaudit.constants import MERGE_TAG_PREFIX
from ciaudit.utils.datetime_utils import parse_github_timestamp, parse_optional_timestamp


class Severity(Enum):
    """Outcome of a single audit finding"""

    OK = "ok"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class PullRequest:
    """Represents a pull request with the metadata the audits look at."""

    number: int
    base_ref: str
    updated_at: datetime
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None  # None for unmerged PRs
    state: str = "open"
    head_sha: Optional[str] = None
    html_url: str = ""

    @property
    def is_merged(self) -> bool:
        return self.merged_at is not None

    @property
    def merge_tag(self) -> str:
        """Name of the tag created for this PR's merge commit."""
        return f"{MERGE_TAG_PREFIX}{self.number}"

    @classmethod
    def from_github_response(cls, pr: Dict[str, Any]) -> 'PullRequest':
        """Create PullRequest from a GitHub REST pulls (or search issues) response item"""
        base = pr.get('base') or {}
        head = pr.get('head') or {}
        merged_at = pr.get('merged_at')
        if merged_at is None and pr.get('pull_request'):
            # search results carry merge info under "pull_request"
            merged_at = pr['pull_request'].get('merged_at')
        return cls(
            number=int(pr['number']),
            base_ref=base.get('ref', ''),
            updated_at=parse_github_timestamp(pr['updated_at']),
            created_at=parse_optional_timestamp(pr.get('created_at')),
            merged_at=parse_optional_timestamp(merged_at),
            state=pr.get('state', 'open'),
            head_sha=head.get('sha'),
            html_url=pr.get('html_url', ''),
        )


@dataclass(frozen=True)
class Tag:
    name: str
    sha: str

    @classmethod
    def from_github_response(cls, tag: Dict[str, Any]) -> 'Tag':
        return cls(name=tag['name'], sha=(tag.get('commit') or {}).get('sha', ''))


@dataclass(frozen=True)
class Asset:
    """A file attached to a release"""

    name: str
    state: str
    size: int
    browser_download_url: str = ""

    @classmethod
    def from_github_response(cls, asset: Dict[str, Any]) -> 'Asset':
        return cls(
            name=asset['name'],
            state=asset.get('state', ''),
            size=int(asset.get('size', 0)),
            browser_download_url=asset.get('browser_download_url', ''),
        )


@dataclass(frozen=True)
class Release:
    """A release attached to a tag, identified by its tag name."""

    tag_name: str
    html_url: str
    draft: bool
    created_at: datetime
    assets: List[Asset] = field(default_factory=list)

    @classmethod
    def from_github_response(cls, release: Dict[str, Any]) -> 'Release':
        return cls(
            tag_name=release['tag_name'],
            html_url=release.get('html_url', ''),
            draft=bool(release.get('draft', False)),
            created_at=parse_github_timestamp(release['created_at']),
            assets=[Asset.from_github_response(asset) for asset in release.get('assets', [])],
        )


@dataclass(frozen=True)
class CheckRun:
    name: str
    status: str  # "queued", "in_progress", "completed"
    conclusion: Optional[str]
    details_url: str = ""
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_github_response(cls, check: Dict[str, Any]) -> 'CheckRun':
        # check runs have no updated_at; completed_at/started_at are the closest thing
        updated = check.get('updated_at') or check.get('completed_at') or check.get('started_at')
        return cls(
            name=check['name'],
            status=check.get('status', ''),
            conclusion=check.get('conclusion'),
            details_url=check.get('details_url') or check.get('html_url') or '',
            started_at=parse_optional_timestamp(check.get('started_at')),
            updated_at=parse_optional_timestamp(updated),
        )


@dataclass(frozen=True)
class CommitStatus:
    context: str
    state: str  # "error", "failure", "pending", "success"
    target_url: str = ""
    updated_at: Optional[datetime] = None

    @classmethod
    def from_github_response(cls, status: Dict[str, Any]) -> 'CommitStatus':
        return cls(
            context=status['context'],
            state=status.get('state', ''),
            target_url=status.get('target_url') or '',
            updated_at=parse_optional_timestamp(status.get('updated_at')),
        )


@dataclass(frozen=True)
class Finding:
    """One diagnostic line produced by an audit"""

    subject: str  # e.g. "merge_pr_123" or "#123"
    severity: Severity
    message: str
    url: Optional[str] = None

    def __str__(self) -> str:
        line = f"{self.subject}: {self.message}"
        if self.url:
            line = f"{line} ({self.url})"
        return line


@dataclass
class AuditReport:
    """Accumulates findings of one audit run."""

    name: str
    findings: List[Finding] = field(default_factory=list)
    checked: int = 0
    skipped: int = 0

    def add(self, finding: Finding) -> None:
        self.findings.append(finding)

    def extend(self, findings: List[Finding]) -> None:
        self.findings.extend(findings)

    def count(self, severity: Severity) -> int:
        return sum(1 for finding in self.findings if finding.severity is severity)

    @property
    def errors(self) -> List[Finding]:
        return [finding for finding in self.findings if finding.severity is Severity.ERROR]

    @property
    def has_errors(self) -> bool:
        return any(finding.severity is Severity.ERROR for finding in self.findings)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_errors else 0
