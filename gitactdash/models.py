"""Pydantic models for GitHub payloads and dashboard views."""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, computed_field
from pydantic.alias_generators import to_camel


class AccountType(StrEnum):
    """GitHub account kind."""

    USER = "User"
    ORGANIZATION = "Organization"
    BOT = "Bot"


class Owner(BaseModel):
    """Repository owner."""

    login: str
    id: int | None = None
    type: AccountType = AccountType.USER


class Repository(BaseModel):
    """A GitHub repository."""

    id: int
    name: str
    full_name: str
    owner: Owner
    private: bool = False
    html_url: str = ""
    description: str | None = None
    language: str | None = None
    fork: bool = False
    archived: bool = False
    updated_at: datetime | None = None


class Organization(BaseModel):
    """An organization the current user belongs to."""

    id: int
    login: str
    description: str | None = None


class Workflow(BaseModel):
    """A GitHub Actions workflow definition."""

    id: int
    name: str
    path: str
    state: str
    html_url: str = ""


class RunStatus(StrEnum):
    """Simplified run status shown in the UI."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    IN_PROGRESS = "in_progress"
    QUEUED = "queued"
    UNKNOWN = "unknown"


class WorkflowRun(BaseModel):
    """A single execution of a workflow."""

    id: int
    name: str | None = None
    head_branch: str | None = None
    event: str | None = None
    status: str | None = None
    conclusion: str | None = None
    run_number: int | None = None
    html_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field
    @property
    def display_status(self) -> RunStatus:
        return get_display_status(self)


class WorkflowWithLatestRun(BaseModel):
    """Workflow summary combined with its most recent run, if any."""

    workflow_id: int
    workflow_name: str
    workflow_path: str
    workflow_state: str
    workflow_url: str
    latest_run: WorkflowRun | None = None

    @classmethod
    def from_workflow(cls, workflow: Workflow, latest_run: WorkflowRun | None) -> "WorkflowWithLatestRun":
        return cls(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            workflow_path=workflow.path,
            workflow_state=workflow.state,
            workflow_url=workflow.html_url,
            latest_run=latest_run,
        )


class RepositoryType(StrEnum):
    """Repository kinds for filtering."""

    ALL = "all"
    PERSONAL = "personal"
    ORGANIZATION = "organization"


class RepositorySortBy(StrEnum):
    """Repository sorting criteria."""

    NAME = "name"
    UPDATED_AT = "updated_at"


class RepositoryFilter(BaseModel):
    """Dashboard filter for the repository list."""

    model_config = ConfigDict(frozen=True)

    search_text: str = ""
    type: RepositoryType = RepositoryType.ALL
    sort_by: RepositorySortBy = RepositorySortBy.NAME
    ascending: bool = True


_COMPLETED_CONCLUSIONS = {
    "success": RunStatus.SUCCESS,
    "failure": RunStatus.FAILURE,
    "cancelled": RunStatus.CANCELLED,
}


def get_display_status(run: WorkflowRun) -> RunStatus:
    """Collapse GitHub's status/conclusion pair into a single display status."""
    if run.status == "completed":
        return _COMPLETED_CONCLUSIONS.get(run.conclusion or "", RunStatus.UNKNOWN)
    if run.status == "in_progress":
        return RunStatus.IN_PROGRESS
    if run.status == "queued":
        return RunStatus.QUEUED
    return RunStatus.UNKNOWN


def get_repository_type(repository: Repository) -> RepositoryType:
    if repository.owner.type == AccountType.ORGANIZATION:
        return RepositoryType.ORGANIZATION
    return RepositoryType.PERSONAL


def _matches(repository: Repository, search_text: str) -> bool:
    needle = search_text.strip().lower()
    if not needle:
        return True
    haystacks = (repository.name, repository.full_name, repository.description or "")
    return any(needle in text.lower() for text in haystacks)


def apply_filter(repositories: list[Repository], repo_filter: RepositoryFilter) -> list[Repository]:
    """Filter by search text and type, then sort.

    Args:
        repositories: Repositories to filter
        repo_filter: Search text, repository type and sort order

    Returns:
        A new list; the input is left untouched
    """
    selected = [
        repo
        for repo in repositories
        if _matches(repo, repo_filter.search_text)
        and (repo_filter.type == RepositoryType.ALL or get_repository_type(repo) == repo_filter.type)
    ]

    if repo_filter.sort_by == RepositorySortBy.UPDATED_AT:
        oldest = datetime.min.replace(tzinfo=UTC)
        selected.sort(key=lambda r: r.updated_at or oldest, reverse=not repo_filter.ascending)
    else:
        selected.sort(key=lambda r: r.name.lower(), reverse=not repo_filter.ascending)
    return selected


class Theme(StrEnum):
    """Dashboard color theme."""

    LIGHT = "light"
    DARK = "dark"


class Preferences(BaseModel):
    """Client-side UI preferences, stored as camelCase JSON in localStorage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    theme: Theme = Theme.LIGHT
    sidebar_collapsed: bool = False
