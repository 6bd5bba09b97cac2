# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
ciaudit CLI - audit commands and configuration management.

Usage:
    ciaudit manifest          # Check merge_pr_* releases
    ciaudit checks            # Check CI of open PRs
    ciaudit config            # View configuration
"""

from .main import cli, main

__all__ = ['cli', 'main']
