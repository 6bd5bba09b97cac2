# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Shared fixtures: a fixed clock, raw GitHub payload factories and async helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from ciaudit.classes import PullRequest
from ciaudit.utils.datetime_utils import format_github_timestamp
from ciaudit.utils.github_api_tools import ApiResponse

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
MANIFEST_SHA = '0123456789abcdef0123456789abcdef01234567'


async def _async_iter(items):
    for item in items:
        yield item


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def async_iter():
    """Turn a list into an async iterator, like a paginated stream."""
    return _async_iter


@pytest.fixture
def manifest_sha():
    return MANIFEST_SHA


@pytest.fixture
def make_pull_request():
    """Factory for PullRequest objects with audit-friendly defaults."""

    def _make(number=1234, **overrides):
        values = {
            'number': number,
            'base_ref': 'main',
            'updated_at': NOW - timedelta(hours=2),
            'created_at': datetime(2017, 6, 30, tzinfo=timezone.utc),
            'merged_at': datetime(2017, 7, 2, tzinfo=timezone.utc),
            'state': 'closed',
            'head_sha': 'f' * 40,
            'html_url': f'https://github.com/web-platform-tests/wpt/pull/{number}',
        }
        values.update(overrides)
        return PullRequest(**values)

    return _make


@pytest.fixture
def make_asset_json():
    def _make(name=f'MANIFEST-{MANIFEST_SHA}.json.gz', state='uploaded', size=1_700_000):
        return {
            'name': name,
            'state': state,
            'size': size,
            'browser_download_url': f'https://github.com/web-platform-tests/wpt/releases/download/{name}',
        }

    return _make


@pytest.fixture
def make_release_json(make_asset_json):
    """Factory for raw release payloads as returned by the releases API."""

    def _make(tag_name='merge_pr_1234', created_at=None, assets=None, draft=False, release_id=1):
        created_at = created_at or NOW - timedelta(days=1)
        return {
            'id': release_id,
            'tag_name': tag_name,
            'html_url': f'https://github.com/web-platform-tests/wpt/releases/tag/{tag_name}',
            'draft': draft,
            'created_at': format_github_timestamp(created_at),
            'assets': [make_asset_json()] if assets is None else assets,
        }

    return _make


@pytest.fixture
def make_pull_json():
    """Factory for raw pull request payloads as returned by the pulls API."""

    def _make(number=1234, updated_at=None, merged_at=None, state='closed', base_ref='main', created_at=None):
        return {
            'number': number,
            'state': state,
            'html_url': f'https://github.com/web-platform-tests/wpt/pull/{number}',
            'base': {'ref': base_ref},
            'head': {'sha': 'f' * 40},
            'created_at': format_github_timestamp(created_at or NOW - timedelta(days=3)),
            'updated_at': format_github_timestamp(updated_at or NOW - timedelta(hours=2)),
            'merged_at': format_github_timestamp(merged_at) if merged_at else None,
        }

    return _make


@pytest.fixture
def api_response():
    """Factory for ApiResponse objects as returned by GitHubClient._send."""

    def _make(body=None, status=200, headers=None, next_url=None, url='https://api.github.com/test'):
        return ApiResponse(
            status=status,
            headers=headers or {},
            body=[] if body is None else body,
            url=url,
            next_url=next_url,
        )

    return _make
