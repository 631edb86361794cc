"""Cleanup run report schemas."""

from pydantic import BaseModel, ConfigDict, Field


class FilterResult(BaseModel):
    """Output of the retirement-set filter, with the sets behind each count."""

    in_use: list[str] = Field(default_factory=list, description="One entry per service")
    remaining_count: int = Field(default=0, description="Revisions left after in-use removal")
    families: list[str] = Field(default_factory=list, description="Families scanned for cutoff")
    protected: list[str] = Field(default_factory=list, description="Recent unused revisions kept")
    deletable: list[str] = Field(default_factory=list)


class FailureRecord(BaseModel):
    """A deregistration that failed permanently."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    arn: str
    error: BaseException | None = Field(
        default=None, exclude=True, repr=False, description="The exception as raised"
    )
    error_code: str
    error_message: str


class RetirementResult(BaseModel):
    """Tallies of one deregistration run."""

    total_jobs: int = 0
    succeeded: int = 0
    failures: list[FailureRecord] = Field(default_factory=list)
    throttled: int = Field(default=0, description="Throttled attempts that were retried")
    session_refreshes: int = 0

    @property
    def failed(self) -> int:
        return len(self.failures)


class CleanupReport(BaseModel):
    """Counts at each pipeline stage, plus deregistration results when applied."""

    applied: bool = False
    clusters: int = 0
    services: int = 0
    described_services: int = 0
    task_definitions: int = 0
    in_use: int = 0
    remaining: int = 0
    families: int = 0
    protected: int = 0
    deletable: int = 0

    in_use_arns: list[str] = Field(default_factory=list)
    protected_arns: list[str] = Field(default_factory=list)
    deletable_arns: list[str] = Field(default_factory=list)

    retirement: RetirementResult | None = None
