"""
pytest configuration for deprecation scanner tests.

This file configures:
1. Test markers for different test types
2. A fixed clock so recency windows and cache days are deterministic
3. Fixtures for common GitHub API payloads
4. A mock GitHub client with async endpoint methods
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, Mock

from deprecation_scanner.cache import SnapshotCache
from deprecation_scanner.config import Settings

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)
JOB_URL = "https://github.com/acme/widgets/actions/runs/100/jobs/900"
JOB_KEY = "https://github.com/acme/widgets/actions/runs/100/"


def iso(dt: datetime) -> str:
    """Format a datetime the way the GitHub API does."""
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def make_run(run_id: int, created_at: datetime, head_sha: str = "abc123"):
    return {"id": run_id, "created_at": iso(created_at), "head_sha": head_sha}


def make_check_run(
    check_run_id: int,
    status: str = "completed",
    annotations_count: int = 1,
    html_url=JOB_URL,
):
    return {
        "id": check_run_id,
        "status": status,
        "html_url": html_url,
        "output": {"annotations_count": annotations_count},
    }


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from the environment, caching under tmp_path."""
    return Settings(github_token="test_token_12345", cache_dir=tmp_path / "cache")


@pytest.fixture
def snapshot_cache(tmp_path):
    return SnapshotCache(tmp_path / "cache", clock=lambda: NOW)


@pytest.fixture
def mock_github_client():
    """Fixture providing a GitHub client whose endpoints are AsyncMocks."""
    client = Mock()
    client.list_repo_workflows = AsyncMock(
        return_value=[{"id": 1, "name": "CI"}]
    )
    client.list_workflow_runs = AsyncMock(
        return_value=[make_run(100, NOW - timedelta(hours=3))]
    )
    client.list_check_runs_for_ref = AsyncMock(return_value=[make_check_run(900)])
    client.list_annotations = AsyncMock(
        return_value=[{"message": "action/foo@v1 is deprecated, use v2"}]
    )
    return client
