"""ECS inventory schemas."""

from pydantic import BaseModel, Field


class Page(BaseModel):
    """One page of a paginated ECS listing."""

    items: list[str] = Field(default_factory=list)
    next_token: str | None = None


class Service(BaseModel):
    """Read-only snapshot of an ECS service and the revision it runs."""

    service_arn: str
    cluster_arn: str
    task_definition: str = Field(description="ARN of the in-use task definition revision")
    service_name: str | None = None
    status: str | None = None
