# The MIT License (MIT)
# Copyright © 2025 Entrius

"""Shared fixtures for CLI tests."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from ciaudit.classes import AuditReport, Finding, Severity
from ciaudit.config import AuditConfig


@pytest.fixture
def cli_root():
    from ciaudit.cli.main import cli

    return cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path):
    """Point `ciaudit config` at a throwaway config file."""
    path = tmp_path / 'config.json'
    with patch('ciaudit.cli.config_commands.CONFIG_FILE', path):
        yield path


@pytest.fixture
def resolved():
    """Skip config and token resolution for commands under test."""
    with patch('ciaudit.cli.main.resolve_config', return_value=(AuditConfig(), 'fake_github_token')) as mock_resolve:
        yield mock_resolve


@pytest.fixture
def quiet_logging():
    with patch('ciaudit.utils.logging.bt.logging') as mock_logging:
        yield mock_logging


@pytest.fixture
def ok_report():
    report = AuditReport(name='manifest', checked=1)
    report.add(Finding('merge_pr_1234', Severity.OK, 'OK'))
    return report


@pytest.fixture
def failing_report():
    report = AuditReport(name='manifest', checked=2)
    report.add(Finding('merge_pr_1234', Severity.OK, 'OK'))
    report.add(Finding('merge_pr_1235', Severity.ERROR, "MANIFEST.json.gz is in state 'pending'"))
    return report
