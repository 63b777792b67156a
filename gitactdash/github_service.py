"""GitHub access for the dashboard, translated into results.

No method raises for GitHub or transport errors: each one resolves to a
success, a warning (partial data) or a failure carrying a readable message.
"""

import asyncio

from gitactdash.github_client import (
    AuthorizationError,
    GitHubApiError,
    GitHubClient,
    NotFoundError,
    RateLimitExceededError,
)
from gitactdash.logging_config import get_github_logger, github_operation, service_operation, time_operation
from gitactdash.models import (
    Repository,
    RepositoryFilter,
    Workflow,
    WorkflowRun,
    WorkflowWithLatestRun,
    apply_filter,
)
from gitactdash.result import Err, Result, failure, pending, success, warning

log = get_github_logger()

AUTHORIZATION_FAILED = "Authorization failed. Please check your GitHub access token."
OWNER_REQUIRED = "Repository owner cannot be null or empty."
NAME_REQUIRED = "Repository name cannot be null or empty."


def _cancelled(cancel_event: asyncio.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _api_failure(error: GitHubApiError, not_found: str | None = None) -> Err:
    """Translate a GitHub API exception into a failure message."""
    match error:
        case NotFoundError() if not_found:
            return failure(not_found)
        case RateLimitExceededError():
            log.warning("rate_limit_exceeded", reset=str(error.reset))
            return failure(f"GitHub API rate limit exceeded. Reset at: {error.reset}")
        case AuthorizationError():
            log.error("authorization_failed", error=str(error))
            return failure(AUTHORIZATION_FAILED)
        case _:
            log.error("github_api_error", status=error.status_code, error=str(error))
            return failure(f"GitHub API error: {error}")


def _validate_repository(owner: str, repo_name: str) -> Err | None:
    if not owner or not owner.strip():
        return failure(OWNER_REQUIRED)
    if not repo_name or not repo_name.strip():
        return failure(NAME_REQUIRED)
    return None


class GitHubService:
    """Repository and workflow queries for the current user."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    async def get_user_repositories(
        self, cancel_event: asyncio.Event | None = None
    ) -> Result[list[Repository]]:
        """Get personal and organization repositories, de-duplicated by id.

        Args:
            cancel_event: Set to stop early; a cancelled start yields an empty list

        Returns:
            Success with the repositories, or a failure if any listing call fails
        """
        with (
            service_operation("GitHubService", "get_user_repositories"),
            time_operation(log, "get_user_repositories"),
        ):
            if _cancelled(cancel_event):
                log.warning("operation_cancelled_before_start")
                return success([])

            try:
                log.info("repositories_fetch_started")
                repositories = list(await self._client.list_repositories_for_current_user())
                log.debug("personal_repositories_fetched", count=len(repositories))

                organizations = await self._client.list_organizations_for_current_user()
                log.debug("organizations_found", count=len(organizations))

                for org in organizations:
                    if _cancelled(cancel_event):
                        log.warning("operation_cancelled", stage="organization_repositories")
                        break

                    with github_operation("get_org_repositories", organization=org.login):
                        org_repos = await self._client.list_repositories_for_org(org.login)
                        repositories.extend(org_repos)
                        log.debug("organization_repositories_fetched", count=len(org_repos))

                seen: set[int] = set()
                unique: list[Repository] = []
                for repo in repositories:
                    if repo.id not in seen:
                        seen.add(repo.id)
                        unique.append(repo)

                log.info("repositories_fetched", total=len(repositories), unique=len(unique))
                return success(unique)
            except GitHubApiError as e:
                return _api_failure(e)
            except Exception as e:
                log.exception("repositories_fetch_failed")
                return failure(f"Unexpected error while fetching repositories: {e}")

    async def get_workflows(
        self, owner: str, repo_name: str, cancel_event: asyncio.Event | None = None
    ) -> Result[list[Workflow]]:
        """Get all workflows of a repository."""
        if _cancelled(cancel_event):
            return success([])

        if invalid := _validate_repository(owner, repo_name):
            return invalid

        with github_operation("get_workflows", repository=f"{owner}/{repo_name}"):
            try:
                workflows = await self._client.list_workflows(owner, repo_name)
                log.debug("workflows_fetched", count=len(workflows))
                return success(workflows)
            except GitHubApiError as e:
                return _api_failure(
                    e,
                    not_found=f"Repository '{owner}/{repo_name}' not found or you don't have access to it.",
                )
            except Exception as e:
                log.exception("workflows_fetch_failed")
                return failure(
                    f"Unexpected error while fetching workflows for '{owner}/{repo_name}': {e}"
                )

    async def get_latest_workflow_run(
        self,
        owner: str,
        repo_name: str,
        workflow_id: int,
        cancel_event: asyncio.Event | None = None,
    ) -> Result[WorkflowRun | None]:
        """Get the most recent run of a workflow; success with None when it never ran."""
        if _cancelled(cancel_event):
            return success(None)

        if invalid := _validate_repository(owner, repo_name):
            return invalid

        try:
            runs = await self._client.list_workflow_runs(owner, repo_name, workflow_id, per_page=1)
            return success(runs[0] if runs else None)
        except GitHubApiError as e:
            return _api_failure(
                e,
                not_found=f"Workflow with ID '{workflow_id}' not found in repository '{owner}/{repo_name}'.",
            )
        except Exception as e:
            log.exception("latest_run_fetch_failed", workflow_id=workflow_id)
            return failure(
                f"Unexpected error while fetching latest run for workflow '{workflow_id}' "
                f"in '{owner}/{repo_name}': {e}"
            )

    async def get_workflows_with_latest_runs(
        self, owner: str, repo_name: str, cancel_event: asyncio.Event | None = None
    ) -> Result[list[WorkflowWithLatestRun]]:
        """Get every workflow of a repository together with its latest run.

        A failure to list the workflows fails the whole call. A failure to
        fetch one workflow's latest run only adds a warning line; that
        workflow is still returned, without a run.
        """
        with service_operation("GitHubService", "get_workflows_with_latest_runs"):
            workflows = await self.get_workflows(owner, repo_name, cancel_event)
            return await workflows.bind_async(
                lambda items: self._attach_latest_runs(owner, repo_name, items, cancel_event)
            )

    async def _attach_latest_runs(
        self,
        owner: str,
        repo_name: str,
        workflows: list[Workflow],
        cancel_event: asyncio.Event | None,
    ) -> Result[list[WorkflowWithLatestRun]]:
        summaries: list[WorkflowWithLatestRun] = []
        warnings: list[str] = []

        for workflow in workflows:
            if _cancelled(cancel_event):
                break

            latest = await self.get_latest_workflow_run(owner, repo_name, workflow.id, cancel_event)
            latest.on_failure(
                lambda message, name=workflow.name: warnings.append(
                    f"Failed to get latest run for workflow '{name}': {message}"
                )
            )
            summaries.append(WorkflowWithLatestRun.from_workflow(workflow, latest.value_or_default()))

        if warnings:
            log.warning("latest_runs_incomplete", failed=len(warnings), total=len(summaries))
            return warning(summaries, *warnings)
        return success(summaries)

    async def get_dashboard(
        self,
        repo_filter: RepositoryFilter | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Result[list[Repository]]:
        """Repositories of the current user narrowed by the dashboard filter."""
        repo_filter = repo_filter or RepositoryFilter()
        return await (
            pending(self.get_user_repositories(cancel_event))
            .map(lambda repositories: apply_filter(repositories, repo_filter))
            .on_failure(lambda message: log.warning("dashboard_unavailable", error=message))
        )
