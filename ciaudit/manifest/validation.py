# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Manifest asset checks for a single release.

Every violation is collected; validation never stops at the first problem
and never raises for a bad release.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from ciaudit.classes import Asset, Finding, Release, Severity
from ciaudit.config import AuditConfig
from ciaudit.constants import (
    MANIFEST_FORMATS,
    MIN_MANIFEST_SIZE,
    REQUIRED_MANIFEST_FORMATS,
    UPLOADED_ASSET_STATE,
)


def manifest_pattern(formats: Sequence[str]) -> Pattern:
    """Pattern for MANIFEST-<40 lowercase hex>.json.<ext>, restricted to the known formats."""
    extensions = '|'.join(re.escape(ext) for ext in formats)
    return re.compile(rf'^MANIFEST-([0-9a-f]{{40}})\.json\.({extensions})$')


@dataclass(frozen=True)
class ManifestRules:
    formats: List[str] = field(default_factory=lambda: list(MANIFEST_FORMATS))
    required_formats: List[str] = field(default_factory=lambda: list(REQUIRED_MANIFEST_FORMATS))
    min_size: int = MIN_MANIFEST_SIZE

    @classmethod
    def from_config(cls, config: AuditConfig) -> 'ManifestRules':
        return cls(
            formats=list(config.manifest_formats),
            required_formats=list(config.required_formats),
            min_size=config.min_manifest_size,
        )

    @property
    def pattern(self) -> Pattern:
        return manifest_pattern(self.formats)


def classify_asset_name(name: str, formats: Sequence[str] = MANIFEST_FORMATS) -> Optional[Tuple[str, str]]:
    """Return (commit sha, format extension) for a manifest asset name, None for anything else."""
    match = manifest_pattern(formats).match(name)
    if not match:
        return None
    return match.group(1), match.group(2)


def group_manifest_assets(assets: Sequence[Asset], rules: ManifestRules) -> Dict[str, List[Asset]]:
    pattern = rules.pattern
    grouped: Dict[str, List[Asset]] = {}
    for asset in assets:
        match = pattern.match(asset.name)
        if not match:
            continue
        grouped.setdefault(match.group(2), []).append(asset)
    return grouped


def validate_release_assets(release: Release, rules: ManifestRules) -> List[Finding]:
    """
    Check the manifest assets of one release.

    Args:
        release (Release): Release to check
        rules (ManifestRules): Known formats, required formats and size floor

    Returns:
        List[Finding]: One error finding per violation, empty when the release is fine
    """
    subject = release.tag_name
    findings: List[Finding] = []
    grouped = group_manifest_assets(release.assets, rules)

    for ext, assets in grouped.items():
        if len(assets) > 1:
            names = ', '.join(asset.name for asset in assets)
            findings.append(
                Finding(subject, Severity.ERROR, f"multiple manifests for .{ext}: {names}", release.html_url)
            )

        for asset in assets:
            if asset.state != UPLOADED_ASSET_STATE:
                findings.append(
                    Finding(subject, Severity.ERROR, f"{asset.name} is in state {asset.state!r}", release.html_url)
                )
            if asset.size < rules.min_size:
                findings.append(
                    Finding(
                        subject,
                        Severity.ERROR,
                        f"{asset.name} too small ({asset.size} < {rules.min_size} bytes)",
                        release.html_url,
                    )
                )

    for ext in rules.required_formats:
        if ext not in grouped:
            findings.append(Finding(subject, Severity.ERROR, f"no {ext} manifest found", release.html_url))

    return findings
