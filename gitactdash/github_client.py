"""Async GitHub REST client.

Thin wrapper over httpx that turns GitHub error responses into a small
exception hierarchy. Only the first page of each listing is fetched.
"""

from datetime import UTC, datetime
from typing import Any

import httpx
from pydantic import TypeAdapter

from gitactdash.config import settings
from gitactdash.logging_config import get_github_logger
from gitactdash.models import Organization, Repository, Workflow, WorkflowRun

log = get_github_logger()

API_VERSION = "2022-11-28"
PAGE_SIZE = 100

_repositories = TypeAdapter(list[Repository])
_organizations = TypeAdapter(list[Organization])
_workflows = TypeAdapter(list[Workflow])
_workflow_runs = TypeAdapter(list[WorkflowRun])


class GitHubApiError(Exception):
    """GitHub answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(GitHubApiError):
    """Resource does not exist or is hidden from the token."""


class AuthorizationError(GitHubApiError):
    """Token missing, expired or revoked."""


class RateLimitExceededError(GitHubApiError):
    """Primary or secondary rate limit hit."""

    def __init__(self, message: str, reset: datetime, status_code: int | None = None):
        super().__init__(message, status_code)
        self.reset = reset


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text or response.reason_phrase or f"HTTP {response.status_code}"


def _reset_time(response: httpx.Response) -> datetime:
    raw = response.headers.get("x-ratelimit-reset")
    if raw and raw.isdigit():
        return datetime.fromtimestamp(int(raw), tz=UTC)
    return datetime.now(UTC)


def error_for_response(response: httpx.Response) -> GitHubApiError:
    """Map an error response to the matching exception."""
    status = response.status_code
    message = _error_message(response)

    if status == 429 or (status == 403 and response.headers.get("x-ratelimit-remaining") == "0"):
        return RateLimitExceededError(message, reset=_reset_time(response), status_code=status)
    if status == 401:
        return AuthorizationError(message, status_code=status)
    if status == 404:
        return NotFoundError(message, status_code=status)
    return GitHubApiError(message, status_code=status)


class GitHubClient:
    """Async client for the handful of endpoints the dashboard needs."""

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: OAuth access token; anonymous requests when omitted
            base_url: API root (default: from settings)
            timeout: Request timeout in seconds (default: from settings)
            transport: Custom httpx transport, used by tests
        """
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": "gitactdash",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.github_api_url,
            headers=headers,
            timeout=timeout or settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a path and return the decoded JSON body.

        Raises:
            GitHubApiError: GitHub returned an error status (or a subclass of it)
            httpx.HTTPError: Transport-level failure
        """
        response = await self._client.get(path, params=params)
        if response.is_error:
            error = error_for_response(response)
            log.debug("github_request_failed", path=path, status=response.status_code, error=str(error))
            raise error
        log.debug("github_request", path=path, status=response.status_code)
        return response.json()

    async def list_repositories_for_current_user(self) -> list[Repository]:
        payload = await self._get("/user/repos", {"per_page": PAGE_SIZE})
        return _repositories.validate_python(payload)

    async def list_organizations_for_current_user(self) -> list[Organization]:
        payload = await self._get("/user/orgs", {"per_page": PAGE_SIZE})
        return _organizations.validate_python(payload)

    async def list_repositories_for_org(self, org: str) -> list[Repository]:
        payload = await self._get(f"/orgs/{org}/repos", {"per_page": PAGE_SIZE})
        return _repositories.validate_python(payload)

    async def list_workflows(self, owner: str, repo: str) -> list[Workflow]:
        payload = await self._get(f"/repos/{owner}/{repo}/actions/workflows", {"per_page": PAGE_SIZE})
        return _workflows.validate_python(payload.get("workflows", []))

    async def list_workflow_runs(
        self, owner: str, repo: str, workflow_id: int, per_page: int = 1
    ) -> list[WorkflowRun]:
        """List runs of one workflow, newest first."""
        payload = await self._get(
            f"/repos/{owner}/{repo}/actions/workflows/{workflow_id}/runs",
            {"per_page": per_page},
        )
        return _workflow_runs.validate_python(payload.get("workflow_runs", []))
