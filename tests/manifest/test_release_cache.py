# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Unit tests for the bounded release scan and per-tag release lookup.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, Mock, patch

import pytest

from ciaudit.classes import Release
from ciaudit.manifest.release_cache import ReleaseCache
from ciaudit.utils.github_api_tools import ApiResponse, GitHubApiError, GitHubClient, GitHubNotFoundError

RELEASES_URL = 'https://api.github.com/repos/web-platform-tests/wpt/releases'


@pytest.fixture
def client():
    return GitHubClient('fake_github_token', 'web-platform-tests/wpt', session=Mock())


@pytest.fixture
def release_pages(make_release_json, now):
    """Four pages of two releases each, one day apart, newest first."""
    pages = []
    day = 0
    for page in range(4):
        releases = []
        for _ in range(2):
            day += 1
            number = 1000 - day
            releases.append(
                make_release_json(tag_name=f'merge_pr_{number}', created_at=now - timedelta(days=day), release_id=number)
            )
        pages.append(releases)
    return pages


def paged_responses(pages):
    responses = []
    for index, page in enumerate(pages):
        next_url = f'{RELEASES_URL}?per_page=100&page={index + 2}' if index < len(pages) - 1 else None
        responses.append(ApiResponse(status=200, headers={}, body=page, url=RELEASES_URL, next_url=next_url))
    return responses


# ============================================================================
# Bounded Scan Tests
# ============================================================================


class TestReleaseCacheLoad:
    @patch('ciaudit.manifest.release_cache.bt.logging')
    def test_stops_after_page_reaching_cutoff(self, mock_logging, client, release_pages, now):
        # page 3 holds releases 5 and 6 days old
        cutoff = now - timedelta(days=5, hours=12)

        with patch.object(client, '_send', new=AsyncMock(side_effect=paged_responses(release_pages))) as mock_send:
            cache = asyncio.run(ReleaseCache().load(client, cutoff))

        assert mock_send.call_count == 3, "No request for page 4"
        assert cache.pages_fetched == 3
        assert len(cache) == 6
        for page in release_pages[:3]:
            for release in page:
                assert release['tag_name'] in cache
        assert 'merge_pr_993' not in cache

    @patch('ciaudit.manifest.release_cache.bt.logging')
    def test_reads_every_page_when_cutoff_not_reached(self, mock_logging, client, release_pages, now):
        with patch.object(client, '_send', new=AsyncMock(side_effect=paged_responses(release_pages))) as mock_send:
            cache = asyncio.run(ReleaseCache().load(client, now - timedelta(days=30)))

        assert mock_send.call_count == 4
        assert len(cache) == 8

    @patch('ciaudit.manifest.release_cache.bt.logging')
    def test_empty_result_is_not_an_error(self, mock_logging, client, now):
        empty = ApiResponse(status=200, headers={}, body=[], url=RELEASES_URL)

        with patch.object(client, '_send', new=AsyncMock(return_value=empty)):
            cache = asyncio.run(ReleaseCache().load(client, now))

        assert len(cache) == 0

    @patch('ciaudit.manifest.release_cache.bt.logging')
    def test_drafts_are_not_cached(self, mock_logging, client, make_release_json, now):
        page = [make_release_json(tag_name='merge_pr_1', draft=True), make_release_json(tag_name='merge_pr_2')]
        response = ApiResponse(status=200, headers={}, body=page, url=RELEASES_URL)

        with patch.object(client, '_send', new=AsyncMock(return_value=response)):
            cache = asyncio.run(ReleaseCache().load(client, now - timedelta(days=30)))

        assert 'merge_pr_1' not in cache
        assert 'merge_pr_2' in cache

    @patch('ciaudit.manifest.release_cache.bt.logging')
    def test_scan_failure_propagates(self, mock_logging, client, now):
        error = ApiResponse(status=500, headers={}, body={'message': 'Server Error'}, url=RELEASES_URL)

        with patch.object(client, '_send', new=AsyncMock(return_value=error)):
            with pytest.raises(GitHubApiError):
                asyncio.run(ReleaseCache().load(client, now))


# ============================================================================
# Lookup Tests
# ============================================================================


class TestReleaseCacheLookup:
    @pytest.fixture
    def mock_client(self):
        client = Mock()
        client.get_release_by_tag = AsyncMock()
        return client

    def test_cache_hit_makes_no_request(self, mock_client, make_release_json):
        cache = ReleaseCache()
        cache.add(Release.from_github_response(make_release_json(tag_name='merge_pr_7')))

        release = asyncio.run(cache.lookup(mock_client, 'merge_pr_7'))

        assert release.tag_name == 'merge_pr_7'
        mock_client.get_release_by_tag.assert_not_called()
        assert cache.direct_lookups == 0

    def test_cache_miss_fetches_by_tag(self, mock_client, make_release_json):
        mock_client.get_release_by_tag.return_value = make_release_json(tag_name='merge_pr_8')
        cache = ReleaseCache()

        release = asyncio.run(cache.lookup(mock_client, 'merge_pr_8'))

        assert release.tag_name == 'merge_pr_8'
        mock_client.get_release_by_tag.assert_awaited_once_with('merge_pr_8')
        assert cache.direct_lookups == 1

    def test_not_found_is_absent(self, mock_client):
        mock_client.get_release_by_tag.side_effect = GitHubNotFoundError('Not Found', status=404, url='u')

        assert asyncio.run(ReleaseCache().lookup(mock_client, 'merge_pr_9')) is None

    def test_draft_is_absent(self, mock_client, make_release_json):
        mock_client.get_release_by_tag.return_value = make_release_json(tag_name='merge_pr_10', draft=True)

        assert asyncio.run(ReleaseCache().lookup(mock_client, 'merge_pr_10')) is None

    def test_other_failures_propagate(self, mock_client):
        mock_client.get_release_by_tag.side_effect = GitHubApiError('Bad credentials', status=401, url='u')

        with pytest.raises(GitHubApiError) as exc_info:
            asyncio.run(ReleaseCache().lookup(mock_client, 'merge_pr_11'))

        assert exc_info.value.status == 401
