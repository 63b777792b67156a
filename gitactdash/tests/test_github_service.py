"""Tests for github_service.py - GitHub calls translated into results."""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from gitactdash.github_client import GitHubClient, RateLimitExceededError
from gitactdash.github_service import (
    AUTHORIZATION_FAILED,
    NAME_REQUIRED,
    OWNER_REQUIRED,
    GitHubService,
)
from gitactdash.models import Organization, Repository, RepositoryFilter, RepositoryType


def route(routes: dict[str, httpx.Response]):
    """Transport handler answering by URL path; unknown paths get a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        return routes.get(request.url.path, httpx.Response(404, json={"message": "Not Found"}))

    return handler


@pytest.fixture
def mock_client():
    """GitHubClient double with async listing methods."""
    return MagicMock(spec=GitHubClient)


class TestGetUserRepositories:
    """Tests for get_user_repositories."""

    @pytest.mark.asyncio
    async def test_merges_and_deduplicates(self, github_client_for, make_repo):
        handler = route(
            {
                "/user/repos": httpx.Response(
                    200,
                    json=[make_repo(1, "personal"), make_repo(2, "shared", owner="acme", owner_type="Organization")],
                ),
                "/user/orgs": httpx.Response(200, json=[{"id": 10, "login": "acme"}]),
                "/orgs/acme/repos": httpx.Response(
                    200,
                    json=[
                        make_repo(2, "shared", owner="acme", owner_type="Organization"),
                        make_repo(3, "tool", owner="acme", owner_type="Organization"),
                    ],
                ),
            }
        )
        async with github_client_for(handler) as client:
            result = await GitHubService(client).get_user_repositories()

        assert result.is_success
        assert [r.id for r in result.value] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_rate_limit_on_organizations(self, mock_client, make_repo):
        reset = datetime(2024, 6, 1, 12, 30, tzinfo=UTC)
        mock_client.list_repositories_for_current_user = AsyncMock(
            return_value=[Repository.model_validate(make_repo(1, "personal"))]
        )
        mock_client.list_organizations_for_current_user = AsyncMock(
            side_effect=RateLimitExceededError("API rate limit exceeded", reset=reset, status_code=403)
        )

        result = await GitHubService(mock_client).get_user_repositories()

        assert result.is_failure
        assert result.message == f"GitHub API rate limit exceeded. Reset at: {reset}"
        assert str(reset) in result.message

    @pytest.mark.asyncio
    async def test_unauthorized(self, github_client_for):
        handler = route({"/user/repos": httpx.Response(401, json={"message": "Bad credentials"})})
        async with github_client_for(handler) as client:
            result = await GitHubService(client).get_user_repositories()

        assert result.is_failure
        assert result.message == AUTHORIZATION_FAILED

    @pytest.mark.asyncio
    async def test_generic_api_error(self, github_client_for):
        handler = route({"/user/repos": httpx.Response(500, json={"message": "Server Error"})})
        async with github_client_for(handler) as client:
            result = await GitHubService(client).get_user_repositories()

        assert result.message == "GitHub API error: Server Error"

    @pytest.mark.asyncio
    async def test_unexpected_error(self, mock_client):
        mock_client.list_repositories_for_current_user = AsyncMock(side_effect=httpx.ConnectError("refused"))

        result = await GitHubService(mock_client).get_user_repositories()

        assert result.is_failure
        assert result.message == "Unexpected error while fetching repositories: refused"

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, mock_client):
        cancel = asyncio.Event()
        cancel.set()

        result = await GitHubService(mock_client).get_user_repositories(cancel)

        assert result.is_success
        assert result.value == []
        mock_client.list_repositories_for_current_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_stops_organization_loop(self, mock_client, make_repo):
        cancel = asyncio.Event()

        async def list_orgs():
            cancel.set()
            return [Organization(id=1, login="acme"), Organization(id=2, login="other")]

        mock_client.list_repositories_for_current_user = AsyncMock(
            return_value=[Repository.model_validate(make_repo(1, "personal"))]
        )
        mock_client.list_organizations_for_current_user = AsyncMock(side_effect=list_orgs)
        mock_client.list_repositories_for_org = AsyncMock(return_value=[])

        result = await GitHubService(mock_client).get_user_repositories(cancel)

        assert [r.id for r in result.value] == [1]
        mock_client.list_repositories_for_org.assert_not_called()


class TestGetWorkflows:
    """Tests for get_workflows and get_latest_workflow_run."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("owner", "name", "message"),
        [("", "demo", OWNER_REQUIRED), ("  ", "demo", OWNER_REQUIRED), ("octocat", "", NAME_REQUIRED)],
    )
    async def test_validation(self, mock_client, owner, name, message):
        service = GitHubService(mock_client)

        workflows = await service.get_workflows(owner, name)
        latest = await service.get_latest_workflow_run(owner, name, 1)

        assert workflows.message == message
        assert latest.message == message
        mock_client.list_workflows.assert_not_called()

    @pytest.mark.asyncio
    async def test_repository_not_found(self, github_client_for):
        async with github_client_for(route({})) as client:
            result = await GitHubService(client).get_workflows("octocat", "missing")

        assert result.message == "Repository 'octocat/missing' not found or you don't have access to it."

    @pytest.mark.asyncio
    async def test_workflow_not_found(self, github_client_for):
        async with github_client_for(route({})) as client:
            result = await GitHubService(client).get_latest_workflow_run("octocat", "demo", 42)

        assert result.message == "Workflow with ID '42' not found in repository 'octocat/demo'."

    @pytest.mark.asyncio
    async def test_never_ran(self, github_client_for):
        handler = route(
            {
                "/repos/octocat/demo/actions/workflows/1/runs": httpx.Response(
                    200, json={"total_count": 0, "workflow_runs": []}
                )
            }
        )
        async with github_client_for(handler) as client:
            result = await GitHubService(client).get_latest_workflow_run("octocat", "demo", 1)

        assert result.is_success
        assert result.value is None

    @pytest.mark.asyncio
    async def test_cancelled(self, mock_client):
        cancel = asyncio.Event()
        cancel.set()
        service = GitHubService(mock_client)

        assert (await service.get_workflows("octocat", "demo", cancel)).value == []
        assert (await service.get_latest_workflow_run("octocat", "demo", 1, cancel)).value is None


class TestWorkflowsWithLatestRuns:
    """Tests for get_workflows_with_latest_runs."""

    @pytest.mark.asyncio
    async def test_partial_failure_is_a_warning(self, github_client_for, sample_workflows):
        base = "/repos/octocat/demo/actions/workflows"
        handler = route(
            {
                base: httpx.Response(200, json=sample_workflows),
                f"{base}/1/runs": httpx.Response(
                    200,
                    json={"workflow_runs": [{"id": 100, "status": "completed", "conclusion": "success"}]},
                ),
                f"{base}/2/runs": httpx.Response(500, json={"message": "Server Error"}),
                f"{base}/3/runs": httpx.Response(
                    200, json={"workflow_runs": [{"id": 300, "status": "in_progress"}]}
                ),
            }
        )
        async with github_client_for(handler) as client:
            result = await GitHubService(client).get_workflows_with_latest_runs("octocat", "demo")

        assert result.is_warning
        assert [w.workflow_name for w in result.value] == ["CI", "Release", "Nightly"]
        assert [w.latest_run.id if w.latest_run else None for w in result.value] == [100, None, 300]
        lines = result.message.splitlines()
        assert len(lines) == 1
        assert lines[0] == "Failed to get latest run for workflow 'Release': GitHub API error: Server Error"

    @pytest.mark.asyncio
    async def test_all_runs_found(self, github_client_for):
        base = "/repos/octocat/demo/actions/workflows"
        handler = route(
            {
                base: httpx.Response(
                    200, json={"workflows": [{"id": 1, "name": "CI", "path": "ci.yml", "state": "active"}]}
                ),
                f"{base}/1/runs": httpx.Response(200, json={"workflow_runs": []}),
            }
        )
        async with github_client_for(handler) as client:
            result = await GitHubService(client).get_workflows_with_latest_runs("octocat", "demo")

        assert result.is_success
        assert result.value[0].latest_run is None

    @pytest.mark.asyncio
    async def test_listing_failure_fails_everything(self, github_client_for):
        async with github_client_for(route({})) as client:
            result = await GitHubService(client).get_workflows_with_latest_runs("octocat", "gone")

        assert result.is_failure
        assert "not found" in result.message


class TestGetDashboard:
    """Tests for get_dashboard."""

    @pytest.mark.asyncio
    async def test_applies_filter(self, mock_client, make_repo):
        mock_client.list_repositories_for_current_user = AsyncMock(
            return_value=[
                Repository.model_validate(make_repo(1, "zeta")),
                Repository.model_validate(make_repo(2, "alpha")),
            ]
        )
        mock_client.list_organizations_for_current_user = AsyncMock(
            return_value=[Organization(id=5, login="acme")]
        )
        mock_client.list_repositories_for_org = AsyncMock(
            return_value=[Repository.model_validate(make_repo(3, "beta", owner="acme", owner_type="Organization"))]
        )
        service = GitHubService(mock_client)

        everything = await service.get_dashboard()
        personal = await service.get_dashboard(RepositoryFilter(type=RepositoryType.PERSONAL, ascending=False))

        assert [r.name for r in everything.value] == ["alpha", "beta", "zeta"]
        assert [r.name for r in personal.value] == ["zeta", "alpha"]

    @pytest.mark.asyncio
    async def test_failure_passes_through(self, mock_client):
        mock_client.list_repositories_for_current_user = AsyncMock(side_effect=RuntimeError("boom"))

        result = await GitHubService(mock_client).get_dashboard()

        assert result.is_failure
        assert result.message == "Unexpected error while fetching repositories: boom"
