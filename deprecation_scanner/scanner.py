import logging
from datetime import timedelta
from typing import List

from pydantic import ValidationError

from .cache import SnapshotCache, utc_now
from .client import GitHubClient
from .config import Settings
from .domain import ApiError, DeprecationReport, Repository, extract_deprecations
from .models import (
    Annotation,
    CheckRun,
    Workflow,
    WorkflowRun,
    parse_annotations,
    parse_check_runs,
    parse_workflow_runs,
    parse_workflows,
)

logger = logging.getLogger(__name__)


class DeprecationScanner:
    """
    Walks a repository's workflows, recent runs, check runs and annotations,
    collecting deprecation messages into a DeprecationReport.

    Every fetch goes through the snapshot cache. Requests are issued one at a
    time, in a fixed nested order.
    """

    def __init__(
        self,
        client: GitHubClient,
        cache: SnapshotCache,
        settings: Settings,
        clock=utc_now,
    ):
        self.client = client
        self.cache = cache
        self.settings = settings
        self.clock = clock

    async def scan(self, repository: Repository) -> DeprecationReport:
        """
        Scan one repository.

        Failing to list the workflows aborts the scan with ApiError. Failures
        further down only skip the affected workflow, run or check run and are
        recorded in ``report.errors``.
        """
        report = DeprecationReport(repository=repository)
        cutoff = self.clock() - timedelta(days=self.settings.recency_days)

        workflows = await self._fetch_workflows(repository)
        logger.info(f"🔍 {repository.name_with_owner}: {len(workflows)} workflows")

        for workflow in workflows:
            try:
                runs = await self._fetch_runs(repository, workflow)
            except (ApiError, ValidationError) as e:
                self._record_failure(report, f"workflow runs of {workflow.name}", e)
                continue

            logger.debug(f"Checking {workflow.name}: {len(runs)} runs")
            for run in runs:
                if run.created_at < cutoff:
                    continue
                await self._scan_run(report, run)

        return report

    async def _scan_run(self, report: DeprecationReport, run: WorkflowRun) -> None:
        repository = report.repository
        try:
            check_runs = await self._fetch_check_runs(repository, run)
        except (ApiError, ValidationError) as e:
            self._record_failure(report, f"check runs of run {run.id}", e)
            return

        for check_run in check_runs:
            if not check_run.is_completed or check_run.annotations_count == 0:
                continue
            try:
                annotations = await self._fetch_annotations(repository, check_run)
            except (ApiError, ValidationError) as e:
                self._record_failure(
                    report, f"annotations of check run {check_run.id}", e
                )
                continue

            for job_key, message in report.merge(
                extract_deprecations(check_run, annotations)
            ):
                logger.info(f"⚠️ {job_key}: {message}")

    async def _fetch_workflows(self, repository: Repository) -> List[Workflow]:
        payload = await self.cache.get(
            "workflows",
            repository.owner,
            repository.name,
            "index",
            lambda: self.client.list_repo_workflows(repository.owner, repository.name),
        )
        return parse_workflows(payload)

    async def _fetch_runs(
        self, repository: Repository, workflow: Workflow
    ) -> List[WorkflowRun]:
        payload = await self.cache.get(
            "workflow-runs",
            repository.owner,
            repository.name,
            str(workflow.id),
            lambda: self.client.list_workflow_runs(
                repository.owner,
                repository.name,
                workflow.id,
                per_page=self.settings.workflow_runs_per_page,
            ),
        )
        return parse_workflow_runs(payload)

    async def _fetch_check_runs(
        self, repository: Repository, run: WorkflowRun
    ) -> List[CheckRun]:
        payload = await self.cache.get(
            "check-runs",
            repository.owner,
            repository.name,
            str(run.id),
            lambda: self.client.list_check_runs_for_ref(
                repository.owner,
                repository.name,
                run.head_sha,
                per_page=self.settings.check_runs_per_page,
            ),
        )
        return parse_check_runs(payload)

    async def _fetch_annotations(
        self, repository: Repository, check_run: CheckRun
    ) -> List[Annotation]:
        payload = await self.cache.get(
            "annotations",
            repository.owner,
            repository.name,
            str(check_run.id),
            lambda: self.client.list_annotations(
                repository.owner, repository.name, check_run.id
            ),
        )
        return parse_annotations(payload)

    def _record_failure(
        self, report: DeprecationReport, stage: str, error: Exception
    ) -> None:
        message = f"Failed to fetch {stage}: {error}"
        logger.warning(f"⚠️ {report.repository.name_with_owner}: {message}")
        report.errors.append(message)
