import logging
from typing import List, Optional

from .client import GitHubClient

logger = logging.getLogger(__name__)


async def select_repositories(
    client: GitHubClient,
    org: str,
    repo: Optional[str] = None,
    repos: Optional[str] = None,
    per_page: int = 100,
) -> List[str]:
    """
    Resolve the names of the repositories to scan.

    A single ``repo`` or a comma separated ``repos`` list is used as given;
    otherwise every repository of the organization is listed.
    """
    if repo and repos:
        raise ValueError("Use either repo or repos, not both")

    if repo:
        return [repo]

    if repos:
        return [name.strip() for name in repos.split(",") if name.strip()]

    names: List[str] = []
    async for page in client.iter_org_repo_pages(org, per_page=per_page):
        names.extend(item["name"] for item in page)

    logger.info(f"📚 Found {len(names)} repositories in {org}")
    return names
