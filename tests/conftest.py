"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

# Make the waha_monitor package importable without installation
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
