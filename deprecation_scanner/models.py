"""
Data models for GitHub Actions API payloads.

These Pydantic models validate the parts of the raw REST responses that the
scanner reads. The snapshot cache stores the raw JSON untouched; payloads are
turned into models only after they come out of the cache.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator


class Workflow(BaseModel):
    """A workflow definition of a repository."""

    id: int
    name: str = ""


class WorkflowRun(BaseModel):
    """
    One execution of a workflow.

    Check runs are not linked to a run directly; they are looked up through
    the commit the run was triggered for (``head_sha``).
    """

    id: int
    created_at: datetime  # Always timezone-aware UTC
    head_sha: str

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_datetime(cls, v):
        """
        Parse the ISO-8601 timestamps GitHub returns into aware UTC datetimes.

        Naive values are assumed to already be in UTC.
        """
        if isinstance(v, str):
            v = date_parser.isoparse(v)
        if isinstance(v, datetime):
            if v.tzinfo is None:
                return v.replace(tzinfo=timezone.utc)
            return v.astimezone(timezone.utc)
        return v


class CheckRun(BaseModel):
    """A single CI job execution attached to a commit."""

    id: int
    status: str
    html_url: Optional[str] = None
    annotations_count: int = Field(default=0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def flatten_output(cls, data: Any) -> Any:
        # The REST payload nests the count under "output"
        if isinstance(data, dict) and "annotations_count" not in data:
            output = data.get("output") or {}
            data = {**data, "annotations_count": output.get("annotations_count") or 0}
        return data

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


class Annotation(BaseModel):
    """A note a check run attached to its output."""

    message: Optional[str] = None


# Payloads of any other shape, including null, raise ValidationError
_workflows = TypeAdapter(List[Workflow])
_workflow_runs = TypeAdapter(List[WorkflowRun])
_check_runs = TypeAdapter(List[CheckRun])
_annotations = TypeAdapter(List[Annotation])


def parse_workflows(payload: Any) -> List[Workflow]:
    return _workflows.validate_python(payload)


def parse_workflow_runs(payload: Any) -> List[WorkflowRun]:
    return _workflow_runs.validate_python(payload)


def parse_check_runs(payload: Any) -> List[CheckRun]:
    return _check_runs.validate_python(payload)


def parse_annotations(payload: Any) -> List[Annotation]:
    return _annotations.validate_python(payload)
