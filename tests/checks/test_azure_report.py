# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Unit tests for the Azure Pipelines report.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock, patch

from ciaudit.checks.azure import describe_check_run, open_pull_request_query, run_azure_report
from ciaudit.classes import CheckRun, Severity
from ciaudit.utils.datetime_utils import format_github_timestamp

SINCE = datetime(2018, 11, 6, 17, 7, 56, tzinfo=timezone.utc)


class TestDescribeCheckRun:
    def test_running_check_shows_minutes(self, now):
        check = CheckRun('Azure Pipelines', 'in_progress', None, started_at=now - timedelta(minutes=15, seconds=30))

        assert describe_check_run(check, now) == 'in_progress (started 15 min ago)'

    def test_queued_check_without_start(self, now):
        assert describe_check_run(CheckRun('Azure Pipelines', 'queued', None), now) == 'queued'

    def test_completed_check_shows_conclusion(self, now):
        assert describe_check_run(CheckRun('Azure Pipelines', 'completed', 'failure'), now) == 'failure'


def test_open_pull_request_query():
    assert (
        open_pull_request_query('web-platform-tests/wpt', SINCE)
        == 'repo:web-platform-tests/wpt is:pr is:open updated:>2018-11-06T17:07:56Z'
    )


@patch('ciaudit.checks.azure.bt.logging')
class TestRunAzureReport:
    def test_report(self, mock_logging, now):
        def search_item(number, created_at):
            return {
                'number': number,
                'html_url': f'https://github.com/web-platform-tests/wpt/pull/{number}',
                'created_at': format_github_timestamp(created_at),
                'updated_at': format_github_timestamp(now),
            }

        results = [
            search_item(1, datetime(2019, 1, 1, tzinfo=timezone.utc)),
            search_item(2, datetime(2018, 1, 1, tzinfo=timezone.utc)),
            search_item(3, datetime(2019, 1, 1, tzinfo=timezone.utc)),
            search_item(4, datetime(2019, 1, 1, tzinfo=timezone.utc)),
        ]
        runs = {
            'sha-1-last': [{'name': 'Azure Pipelines', 'status': 'completed', 'conclusion': 'success'}],
            'sha-2-last': [],
            'sha-3-last': [{'name': 'Taskcluster', 'status': 'completed', 'conclusion': 'success'}],
            'sha-4-last': [
                {
                    'name': 'Azure Pipelines',
                    'status': 'in_progress',
                    'conclusion': None,
                    'started_at': format_github_timestamp(now - timedelta(minutes=15)),
                }
            ],
        }

        client = Mock()
        client.repository = 'web-platform-tests/wpt'
        client.search_issues = AsyncMock(return_value=results)
        client.list_pull_commits = AsyncMock(
            side_effect=lambda number: [{'sha': f'sha-{number}-first'}, {'sha': f'sha-{number}-last'}]
        )
        client.list_check_runs = AsyncMock(side_effect=lambda ref: runs[ref])

        report = asyncio.run(run_azure_report(client, SINCE, now))

        assert [(f.subject, f.severity, f.message) for f in report.findings] == [
            ('#1', Severity.INFO, 'success'),
            ('#3', Severity.WARNING, 'no check'),
            ('#4', Severity.INFO, 'in_progress (started 15 min ago)'),
        ]
        assert report.checked == 3
        assert report.skipped == 1
        assert report.exit_code == 0
        client.search_issues.assert_awaited_once_with(open_pull_request_query('web-platform-tests/wpt', SINCE))

    def test_pull_request_without_commits_is_skipped(self, mock_logging, now):
        client = Mock()
        client.repository = 'web-platform-tests/wpt'
        client.search_issues = AsyncMock(return_value=[{'number': 9, 'created_at': '2019-01-01T00:00:00Z'}])
        client.list_pull_commits = AsyncMock(return_value=[])
        client.list_check_runs = AsyncMock()

        report = asyncio.run(run_azure_report(client, SINCE, now))

        assert report.skipped == 1
        assert report.findings == []
        client.list_check_runs.assert_not_called()
