import argparse
import asyncio
import logging
from typing import List, Optional, Sequence

from pydantic import ValidationError

from .cache import SnapshotCache
from .client import GitHubClient
from .config import Settings, settings as default_settings
from .domain import ApiError, CacheWriteError, DeprecationReport, Repository
from .scanner import DeprecationScanner
from .selector import select_repositories

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None):
    p = argparse.ArgumentParser(
        description="Find deprecation warnings in GitHub Actions annotations"
    )
    p.add_argument("--org", required=True, help="The GitHub organization to check")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--repo", help="The GitHub repository to check")
    group.add_argument(
        "--repos", help="A comma separated list of repositories to check"
    )
    p.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )
    return p.parse_args(argv)


def log_report(report: DeprecationReport) -> None:
    """Log the jobs of one repository that emitted deprecations."""
    logger.info(
        f"📊 {report.repository.name_with_owner}: "
        f"Found {report.job_count} run(s) with deprecations"
    )
    for job_key in report.job_keys:
        logger.info(f"   - {job_key}")
    if report.errors:
        logger.warning(
            f"⚠️ {report.repository.name_with_owner}: "
            f"{len(report.errors)} item(s) skipped after fetch failures"
        )


async def scan_repositories(
    scanner: DeprecationScanner, org: str, names: List[str]
) -> List[DeprecationReport]:
    """
    Scan repositories one after another.

    A repository that fails is logged and skipped; the others are still
    scanned.
    """
    reports: List[DeprecationReport] = []
    failed = 0

    for name in names:
        repository = Repository(owner=org, name=name)
        logger.info(f"🚀 Checking Repo: {repository.name_with_owner}")
        try:
            report = await scanner.scan(repository)
        except (ApiError, ValidationError) as e:
            logger.error(f"❌ {repository.name_with_owner}: Failed to fetch workflows: {e}")
            failed += 1
            continue
        except CacheWriteError as e:
            logger.error(f"❌ {repository.name_with_owner}: Failed to persist cache: {e}")
            failed += 1
            continue

        log_report(report)
        reports.append(report)

    if failed:
        logger.warning(f"⚠️ {failed}/{len(names)} repositories could not be scanned")
    return reports


async def run(
    argv: Optional[Sequence[str]] = None, settings: Settings = default_settings
) -> List[DeprecationReport]:
    """
    Main entry point.

    Builds one client and one cache for the whole run and hands them to the
    selector and the scanner.
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"🚀 Starting deprecation scan for {args.org}")

    async with GitHubClient(
        token=settings.github_token,
        api_url=settings.github_api_url,
        timeout=settings.request_timeout,
        max_rate_limit_retries=settings.max_rate_limit_retries,
    ) as client:
        if not await client.test_connection():
            logger.error("❌ GitHub API connection test failed")
            return []

        names = await select_repositories(
            client,
            args.org,
            repo=args.repo,
            repos=args.repos,
            per_page=settings.repos_per_page,
        )

        scanner = DeprecationScanner(
            client=client,
            cache=SnapshotCache(settings.cache_dir),
            settings=settings,
        )
        reports = await scan_repositories(scanner, args.org, names)

    logger.info(f"🎉 Scanned {len(reports)} of {len(names)} repositories")
    return reports


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
