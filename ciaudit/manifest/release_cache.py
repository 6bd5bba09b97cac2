# The MIT License (MIT)
# Copyright © 2025 Entrius

from datetime import datetime
from typing import Dict, Optional

import bittensor as bt

from ciaudit.classes import Release
from ciaudit.utils.github_api_tools import GitHubClient, GitHubNotFoundError


class ReleaseCache:
    """Releases keyed by tag name, filled by one bounded scan per run.

    A miss is not authoritative: the scan stops at ``cutoff``, so lookups fall
    back to fetching the release by tag.
    """

    def __init__(self):
        self._releases: Dict[str, Release] = {}
        self.pages_fetched = 0
        self.direct_lookups = 0

    def __len__(self) -> int:
        return len(self._releases)

    def __contains__(self, tag: str) -> bool:
        return tag in self._releases

    def get(self, tag: str) -> Optional[Release]:
        return self._releases.get(tag)

    def add(self, release: Release) -> None:
        if release.draft:
            return
        self._releases[release.tag_name] = release

    async def load(self, client: GitHubClient, cutoff: datetime) -> 'ReleaseCache':
        """
        Scan releases newest created first until a page reaches past the cutoff.

        Args:
            client (GitHubClient): API client
            cutoff (datetime): Stop requesting pages once a page's oldest release is older than this

        Returns:
            ReleaseCache: self, for chaining
        """
        bt.logging.info(f"Loading releases created since {cutoff.isoformat()}")

        async for page in client.iter_release_pages():
            self.pages_fetched += 1
            if not page:
                break

            releases = [Release.from_github_response(raw) for raw in page]
            for release in releases:
                self.add(release)

            oldest = min(release.created_at for release in releases)
            if oldest < cutoff:
                bt.logging.debug(f"Release page {self.pages_fetched} reaches {oldest.isoformat()}, stopping scan")
                break

        bt.logging.info(f"Cached {len(self)} releases from {self.pages_fetched} page(s)")
        return self

    async def lookup(self, client: GitHubClient, tag: str) -> Optional[Release]:
        """
        Find the release for a tag, from the cache or by a direct request.

        Returns:
            Optional[Release]: None when the release does not exist

        Raises:
            GitHubApiError: on any failure other than "not found"
        """
        cached = self.get(tag)
        if cached is not None:
            return cached

        self.direct_lookups += 1
        try:
            raw = await client.get_release_by_tag(tag)
        except GitHubNotFoundError:
            return None

        release = Release.from_github_response(raw)
        if release.draft:
            return None
        return release
