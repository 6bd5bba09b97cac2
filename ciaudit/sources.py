# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Pull request streams consumed by the audits, newest updated first.
"""

from typing import AsyncIterator, Optional

from ciaudit.classes import PullRequest
from ciaudit.store.local_store import PULLS, LocalStore
from ciaudit.utils.github_api_tools import GitHubClient

SOURCE_API = 'api'
SOURCE_LOCAL = 'local'
SOURCES = [SOURCE_API, SOURCE_LOCAL]


async def api_pull_requests(client: GitHubClient, state: str = 'closed') -> AsyncIterator[PullRequest]:
    """Page through pull requests sorted by update time, newest first."""
    async for raw in client.iter_pulls(state=state, sort='updated', direction='desc'):
        yield PullRequest.from_github_response(raw)


async def local_pull_requests(store: LocalStore, state: Optional[str] = None) -> AsyncIterator[PullRequest]:
    """Pull requests from the local snapshot, re-ordered newest updated first.

    The snapshot is stored in number order, so it is sorted here to give the
    same ordering guarantee as the API stream.
    """
    pulls = [PullRequest.from_github_response(raw) for raw in store.iter_records(PULLS)]
    if state is not None and state != 'all':
        pulls = [pr for pr in pulls if pr.state == state]
    pulls.sort(key=lambda pr: pr.updated_at, reverse=True)
    for pr in pulls:
        yield pr
