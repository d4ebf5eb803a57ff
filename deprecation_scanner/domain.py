"""
Domain models for the deprecation scanner.

This module keeps the scanning rules independent of the GitHub API: what
counts as a deprecation annotation, how a check run maps to a job key, and
how deprecations are aggregated into a per-repository report.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .models import Annotation, CheckRun

DEPRECATION_MARKER = "deprecated"
JOBS_SEGMENT = "/jobs/"


@dataclass(frozen=True)
class Repository:
    """Immutable reference to a repository inside an organization."""

    owner: str
    name: str

    @property
    def name_with_owner(self) -> str:
        """Full repository identifier in owner/name format."""
        return f"{self.owner}/{self.name}"

    def __post_init__(self):
        if not self.name or not self.owner:
            raise ValueError("Repository name and owner are required")


@dataclass
class DeprecationReport:
    """
    Deprecation messages found in one repository, grouped by job key.

    Messages keep the order in which they were first seen and are never
    duplicated under the same job key. Reports are never merged across
    repositories.
    """

    repository: Repository
    deprecations: Dict[str, List[str]] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def add(self, job_key: str, message: str) -> bool:
        """Record a message for a job; return False if it was already known."""
        messages = self.deprecations.setdefault(job_key, [])
        if message in messages:
            return False
        messages.append(message)
        return True

    def merge(self, pairs: Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
        """Add every (job_key, message) pair and return the ones that were new."""
        return [(key, message) for key, message in pairs if self.add(key, message)]

    @property
    def job_keys(self) -> List[str]:
        return list(self.deprecations)

    @property
    def job_count(self) -> int:
        """Number of distinct jobs with at least one deprecation."""
        return len(self.deprecations)

    @property
    def message_count(self) -> int:
        return sum(len(messages) for messages in self.deprecations.values())


class ApiError(Exception):
    """Base exception for failures to obtain data from the GitHub API."""

    pass


class RateLimitError(ApiError):
    """Exception raised when the GitHub API request quota is exhausted."""

    def __init__(self, message: str, retry_after: float = 60.0):
        super().__init__(message)
        self.retry_after = retry_after


class SecondaryRateLimitError(RateLimitError):
    """Exception raised when GitHub throttles bursts of requests."""

    pass


class AuthenticationError(ApiError):
    """Exception raised when GitHub API authentication fails."""

    pass


class CacheWriteError(Exception):
    """Exception raised when a fetched payload cannot be persisted."""

    pass


def is_deprecation_annotation(message: Optional[str]) -> bool:
    """Whether an annotation message reports a deprecation."""
    return message is not None and DEPRECATION_MARKER in message


def job_key_from_url(html_url: Optional[str]) -> Optional[str]:
    """
    Derive the job key from a check run URL.

    Everything after the first ``/jobs/`` segment is dropped, keeping the
    trailing slash of the run URL. URLs without a job segment are used as
    they are. A missing URL cannot be attributed to a job and yields None.
    """
    if not html_url:
        return None
    index = html_url.find(JOBS_SEGMENT)
    if index < 0:
        return html_url
    return html_url[: index + 1]


def extract_deprecations(
    check_run: CheckRun, annotations: Iterable[Annotation]
) -> List[Tuple[str, str]]:
    """
    Pair each distinct deprecation message of a check run with its job key.

    Messages are deduplicated within the batch and keep first-seen order.
    """
    job_key = job_key_from_url(check_run.html_url)
    if job_key is None:
        return []

    messages: List[str] = []
    for annotation in annotations:
        message = annotation.message
        if is_deprecation_annotation(message) and message not in messages:
            messages.append(message)

    return [(job_key, message) for message in messages]
