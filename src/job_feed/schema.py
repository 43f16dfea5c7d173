from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationInfo,
    field_validator,
)


class ScrapeStatus(StrEnum):
    idle = "idle"
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScrapeStatus.completed, ScrapeStatus.failed)


def _remote_only(status: ScrapeStatus) -> ScrapeStatus:
    if status is ScrapeStatus.idle:
        raise ValueError("'idle' is not a remote operation status")
    return status


RemoteStatus = Annotated[ScrapeStatus, AfterValidator(_remote_only)]


class Tab(StrEnum):
    all = "all"
    for_you = "for-you"
    saved = "saved"
    applied = "applied"


class JobRecord(BaseModel):
    """One job posting as delivered by the feed backend.

    Accepts both the backend's snake_case keys and the camelCase keys used by
    push payloads. Unknown upstream fields are kept as extras.
    """

    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "job_id"))
    title: str = ""
    company: str = ""
    description: str = ""
    location: str = ""
    ai_match_score: int = Field(default=0, validation_alias=AliasChoices("ai_match_score", "aiMatchScore"))
    is_saved: bool = Field(default=False, validation_alias=AliasChoices("is_saved", "isSaved"))
    is_applied: bool = Field(default=False, validation_alias=AliasChoices("is_applied", "isApplied"))

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("title", "company", "description", "location", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("ai_match_score", mode="before")
    @classmethod
    def _score_default(cls, v: Any) -> Any:
        if v is None:
            return 0
        if isinstance(v, float):
            return round(v)
        return v

    @field_validator("ai_match_score")
    @classmethod
    def _clamp_score(cls, v: int) -> int:
        return max(0, min(100, v))

    @field_validator("is_saved", "is_applied", mode="before")
    @classmethod
    def _none_as_false(cls, v: Any) -> Any:
        return False if v is None else v


class FilterState(BaseModel):
    search_query: str = ""
    active_tab: Tab = Tab.all


class FeedView(BaseModel):
    jobs: list[JobRecord]
    tab_counts: dict[Tab, int]
    filters: FilterState


class UpsertResult(BaseModel):
    appended: list[str] = Field(default_factory=list)
    replaced: int = 0
    dropped: int = 0

    @property
    def new_count(self) -> int:
        """Ids that were not in the store before; replacements are not new."""
        return len(self.appended)


class FetchParams(BaseModel):
    search: str = ""
    location: str = ""
    date_filter: str = Field(default="yesterday", serialization_alias="dateFilter")
    limit: int = Field(default=20, ge=1)
    offset: int = Field(default=0, ge=0)
    has_contact: bool = Field(default=True, serialization_alias="hasContact")
    min_salary: int | None = Field(default=None, serialization_alias="minSalary")
    job_type: str | None = Field(default=None, serialization_alias="jobType")
    company: str | None = None

    @property
    def query_params(self) -> dict[str, str]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        return {k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in data.items()}


class FetchResult(BaseModel):
    # raw items, validated one by one when they reach the store
    jobs: list[Any] = Field(default_factory=list)
    stats: dict[str, Any] = Field(default_factory=dict)
    total: int = 0
    success: bool = False

    @field_validator("jobs", "stats", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return [] if info.field_name == "jobs" else {}
        return v


class JobStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    total_jobs: int = Field(default=0, validation_alias=AliasChoices("total_jobs", "totalJobs"))
    jobs_with_contact: int = Field(
        default=0, validation_alias=AliasChoices("jobs_with_contact", "jobsWithContact")
    )


class ScrapeRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    location: str = ""
    date_filter: str = "yesterday"

    @property
    def payload(self) -> dict[str, str]:
        return {"searchQuery": self.query, "location": self.location, "dateFilter": self.date_filter}


class ScrapeOperation(BaseModel):
    operation_id: str
    request: ScrapeRequest
    status: ScrapeStatus = ScrapeStatus.pending


class NewJobsEvent(BaseModel):
    type: Literal["new_jobs"]
    jobs: list[Any]


class ScrapingProgressEvent(BaseModel):
    type: Literal["scraping_progress"]
    status: RemoteStatus


RealtimeEvent = Annotated[NewJobsEvent | ScrapingProgressEvent, Field(discriminator="type")]
RealtimeEventAdapter: TypeAdapter[NewJobsEvent | ScrapingProgressEvent] = TypeAdapter(RealtimeEvent)
