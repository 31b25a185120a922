"""Pytest configuration."""

import os
from datetime import datetime

import pytest

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
FLAKE_PATH = os.path.join(ROOT_DIR, "flake.nix")


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires API keys)",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: mark test as integration test")


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--run-integration"):
        skip_integration = pytest.mark.skip(reason="Need --run-integration to run")
        for item in items:
            if "test_integration" in item.nodeid:
                item.add_marker(skip_integration)


@pytest.fixture
def fixed_now():
    return datetime(2026, 10, 17, 9, 30)


@pytest.fixture
def flake_text():
    with open(FLAKE_PATH, "r", encoding="utf-8") as f:
        return f.read()
