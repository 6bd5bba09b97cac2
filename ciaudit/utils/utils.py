"""
ciaudit Utilities
"""

import hashlib


def mask_secret(secret: str, length: int = 5) -> str:
    """Return a short SHA-256 hash of a secret for logging."""
    h = hashlib.sha256(str(secret).encode("utf-8")).hexdigest()
    return f"<masked:{h[:length]}>"


def parse_repo_name(repository: str) -> tuple:
    """Split 'owner/repo' into its two parts.

    Raises:
        ValueError: if the name is not of the form 'owner/repo'.
    """
    parts = repository.strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Repository must be in 'owner/repo' format (got {repository!r})")
    return parts[0], parts[1]
