from .audit import run_manifest_audit
from .eligibility import EligibilityPolicy, is_eligible, should_skip_pull_request
from .release_cache import ReleaseCache
from .validation import ManifestRules, classify_asset_name, validate_release_assets

__all__ = [
    "run_manifest_audit",
    "EligibilityPolicy",
    "is_eligible",
    "should_skip_pull_request",
    "ReleaseCache",
    "ManifestRules",
    "classify_asset_name",
    "validate_release_assets",
]
