"""
Fork resolution for the FaaSr workflow template repository.

A user's workspace is their fork of FaaSr/FaaSr-workflow. Forks keep the
source repository's name, so the fork of a given owner is always
<owner>/FaaSr-workflow unless the installation lists it under another name.
"""

from typing import Iterable, Optional

import httpx

from src.models.schemas.installation import InstallationRepository
from src.models.schemas.repository import ForkStatus, RepositoryFork
from src.services.github.github_client import GitHubClient
from src.utils.exception import ForkNotFoundError
from src.utils.logging import get_logger

logger = get_logger(__name__)

SOURCE_REPO_OWNER = "FaaSr"
SOURCE_REPO_NAME = "FaaSr-workflow"


def _is_fork_of_source(repo: dict) -> bool:
    parent = repo.get("parent") or {}
    return (
        repo.get("fork") is True
        and (parent.get("owner") or {}).get("login") == SOURCE_REPO_OWNER
        and parent.get("name") == SOURCE_REPO_NAME
    )


async def is_fork(client: GitHubClient, owner: str, repo_name: str) -> bool:
    """
    Return True iff owner/repo_name is a fork of the source repository.

    A missing repository (404) is reported as False; any other error propagates.
    """
    try:
        repo = await client.get_repository(owner, repo_name)
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 404:
            return False
        raise client.handle_http_error(e, f"get repository {owner}/{repo_name}")

    return _is_fork_of_source(repo)


async def find_fork_repository(
    client: GitHubClient,
    owner: str,
    repositories: Iterable[InstallationRepository],
) -> Optional[str]:
    """Return the name of the first listed repository that is a fork of the source."""
    for repository in repositories:
        if await is_fork(client, owner, repository.name):
            logger.info(f"Found fork {owner}/{repository.name}")
            return repository.name
    return None


def _fork_from_payload(owner: str, payload: dict, fork_status: ForkStatus) -> RepositoryFork:
    return RepositoryFork(
        owner=(payload.get("owner") or {}).get("login") or owner,
        repo_name=payload.get("name") or SOURCE_REPO_NAME,
        fork_url=payload.get("html_url") or f"https://github.com/{owner}/{SOURCE_REPO_NAME}",
        fork_status=fork_status,
        default_branch=payload.get("default_branch") or "main",
        created_at=payload.get("created_at"),
    )


class ForkService:
    def __init__(self, client: GitHubClient):
        self.client = client

    async def check_fork_exists(self, owner: str) -> Optional[RepositoryFork]:
        """
        Look up <owner>/FaaSr-workflow and return it when it is a fork of the source.
        """
        try:
            repo = await self.client.get_repository(owner, SOURCE_REPO_NAME)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise self.client.handle_http_error(e, f"get repository {owner}/{SOURCE_REPO_NAME}")

        if not _is_fork_of_source(repo):
            logger.warning(f"{owner}/{SOURCE_REPO_NAME} exists but is not a fork of the source repository")
            return None

        return _fork_from_payload(owner, repo, ForkStatus.EXISTS)

    async def ensure_fork_exists(self, owner: str) -> RepositoryFork:
        """
        Return the owner's fork, asking GitHub to create it when absent.

        Raises:
            ForkNotFoundError: If the source repository cannot be forked (404)
            GitHubAPIException: If the fork request fails otherwise
        """
        existing = await self.check_fork_exists(owner)
        if existing:
            return existing

        logger.info(f"Creating fork of {SOURCE_REPO_OWNER}/{SOURCE_REPO_NAME} for {owner}")
        payload = await self.client.create_fork(SOURCE_REPO_OWNER, SOURCE_REPO_NAME)
        if payload is None:
            raise ForkNotFoundError(
                f"Fork not found: {SOURCE_REPO_OWNER}/{SOURCE_REPO_NAME} is not visible to {owner}"
            )
        return _fork_from_payload(owner, payload, ForkStatus.CREATED)
