"""Pytest configuration and fixtures."""

from typing import Any

import httpx
import pytest

from gitactdash.github_client import GitHubClient
from gitactdash.local_storage import StorageCallError

API_URL = "https://api.github.test"


class FakeStorageBridge:
    """In-memory stand-in for the browser's localStorage."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.items: dict[str, str] = {}
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.error: Exception | None = None

    def is_available(self) -> bool:
        return self.available

    async def call(self, function: str, *args: str) -> Any:
        self.calls.append((function, args))
        if self.error is not None:
            raise self.error
        match function:
            case "localStorage.getItem":
                return self.items.get(args[0])
            case "localStorage.setItem":
                self.items[args[0]] = args[1]
            case "localStorage.removeItem":
                self.items.pop(args[0], None)
            case "localStorage.clear":
                self.items.clear()
            case _:
                raise StorageCallError(f"{function} is not a function")
        return None


@pytest.fixture
def storage_bridge():
    """Connected in-memory storage bridge."""
    return FakeStorageBridge()


@pytest.fixture
def make_repo():
    """Factory for GitHub repository payloads."""

    def factory(
        repo_id: int,
        name: str,
        owner: str = "octocat",
        owner_type: str = "User",
        **extra: Any,
    ) -> dict[str, Any]:
        return {
            "id": repo_id,
            "name": name,
            "full_name": f"{owner}/{name}",
            "owner": {"login": owner, "type": owner_type},
            "html_url": f"https://github.com/{owner}/{name}",
            **extra,
        }

    return factory


@pytest.fixture
def sample_workflows():
    """Workflow listing payload with three workflows."""
    return {
        "total_count": 3,
        "workflows": [
            {"id": 1, "name": "CI", "path": ".github/workflows/ci.yml", "state": "active"},
            {"id": 2, "name": "Release", "path": ".github/workflows/release.yml", "state": "active"},
            {"id": 3, "name": "Nightly", "path": ".github/workflows/nightly.yml", "state": "disabled_manually"},
        ],
    }


@pytest.fixture
def github_client_for():
    """Build a GitHubClient whose requests are answered by ``handler``."""

    def factory(handler) -> GitHubClient:
        return GitHubClient("test-token", base_url=API_URL, transport=httpx.MockTransport(handler))

    return factory
