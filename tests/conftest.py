"""Pytest configuration and fixtures for ecs-cleaner tests."""

import asyncio
from collections.abc import Callable
from types import SimpleNamespace

import pytest
from botocore.exceptions import ClientError

from ecs_cleaner.core.arn import family_of
from ecs_cleaner.providers.base import ECSProviderBase
from ecs_cleaner.schemas.cleanup import CleanupConfig
from ecs_cleaner.schemas.ecs import Page, Service
from ecs_cleaner.workers.backoff import Backoff


def make_client_error(
    code: str, message: str = "", operation: str = "DeregisterTaskDefinition"
) -> ClientError:
    """Build a botocore ClientError the way the ECS client raises it."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def paginate(items: list[str], next_token: str | None, page_size: int) -> Page:
    """Serve ``items`` in pages of ``page_size``; tokens are string offsets."""
    start = int(next_token) if next_token else 0
    end = start + page_size
    return Page(items=items[start:end], next_token=str(end) if end < len(items) else None)


class FakeECSProvider(ECSProviderBase):
    """
    In-memory ECS account.

    ``services`` maps cluster ARN to its described services. Errors queued in
    ``deregister_errors[arn]`` are raised, one per call, before that ARN
    deregisters successfully.
    """

    def __init__(
        self,
        task_definitions: list[str] | None = None,
        services: dict[str, list[Service]] | None = None,
        page_size: int = 2,
        deregister_errors: dict[str, list[BaseException]] | None = None,
    ) -> None:
        self.task_definitions = list(task_definitions or [])
        self.services = services or {}
        self.page_size = page_size
        self.deregister_errors = {arn: list(errs) for arn, errs in (deregister_errors or {}).items()}

        self.deregister_calls: list[str] = []
        self.deregistered: list[str] = []
        self.describe_calls: list[tuple[str, list[str]]] = []
        self.family_listings: list[tuple[str | None, str | None]] = []
        self.refresh_count = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_clusters(self, next_token: str | None = None) -> Page:
        return paginate(list(self.services), next_token, self.page_size)

    async def list_services(self, cluster_arn: str, next_token: str | None = None) -> Page:
        arns = [service.service_arn for service in self.services.get(cluster_arn, [])]
        return paginate(arns, next_token, self.page_size)

    async def describe_services(self, cluster_arn: str, service_arns: list[str]) -> list[Service]:
        self.describe_calls.append((cluster_arn, list(service_arns)))
        by_arn = {service.service_arn: service for service in self.services.get(cluster_arn, [])}
        return [by_arn[arn] for arn in service_arns if arn in by_arn]

    async def list_task_definitions(
        self,
        family_prefix: str | None = None,
        sort: str | None = None,
        next_token: str | None = None,
    ) -> Page:
        if next_token is None:
            self.family_listings.append((family_prefix, sort))

        arns = [arn for arn in self.task_definitions if arn not in self.deregistered]
        if family_prefix:
            arns = [arn for arn in arns if family_of(arn) == family_prefix]
            arns.sort(key=lambda arn: int(arn.rsplit(":", 1)[1]), reverse=(sort == "DESC"))
        return paginate(arns, next_token, self.page_size)

    async def deregister_task_definition(self, task_definition_arn: str) -> None:
        self.deregister_calls.append(task_definition_arn)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            errors = self.deregister_errors.get(task_definition_arn)
            if errors:
                raise errors.pop(0)
            self.deregistered.append(task_definition_arn)
        finally:
            self.in_flight -= 1

    async def refresh_session(self) -> None:
        self.refresh_count += 1
        self.session_generation += 1


def service(name: str, cluster: str, task_definition: str) -> Service:
    """Shorthand for a described service."""
    return Service(
        service_arn=f"arn:aws:ecs:us-east-1:123456789012:service/{cluster}/{name}",
        cluster_arn=cluster,
        task_definition=task_definition,
        service_name=name,
        status="ACTIVE",
    )


# Inventory of the family cutoff scenario: family0:0..3, family1:0..2,
# family2:0..1, family3:0, family4:0..1
FAMILY_SCENARIO_ARNS = [
    "aws-blather:family0:0", "aws-blather:family0:1", "aws-blather:family0:2", "aws-blather:family0:3",
    "aws-blather:family1:0", "aws-blather:family1:1", "aws-blather:family1:2",
    "aws-blather:family2:0", "aws-blather:family2:1",
    "aws-blather:family3:0",
    "aws-blather:family4:0", "aws-blather:family4:1",
]  # fmt: skip

FAMILY_SCENARIO_IN_USE = [
    "aws-blather:family0:3",
    "aws-blather:family1:2",
    "aws-blather:family2:1",
    "aws-blather:family3:0",
]

FAMILY_SCENARIO_DELETABLE = [
    "aws-blather:family0:0",
    "aws-blather:family4:0",
    "aws-blather:family4:1",
]


@pytest.fixture
def client_error() -> Callable[..., ClientError]:
    """Factory for botocore ClientErrors."""
    return make_client_error


@pytest.fixture
def fake_provider() -> type[FakeECSProvider]:
    """Factory for in-memory ECS accounts."""
    return FakeECSProvider


@pytest.fixture
def make_service() -> Callable[[str, str, str], Service]:
    """Factory for described services."""
    return service


@pytest.fixture
def family_scenario() -> SimpleNamespace:
    """ARNs of the family cutoff scenario."""
    return SimpleNamespace(
        arns=list(FAMILY_SCENARIO_ARNS),
        in_use=list(FAMILY_SCENARIO_IN_USE),
        deletable=list(FAMILY_SCENARIO_DELETABLE),
    )


@pytest.fixture
def family_scenario_provider() -> FakeECSProvider:
    """Two clusters whose services pin one revision of family0..family3."""
    return FakeECSProvider(
        task_definitions=FAMILY_SCENARIO_ARNS,
        services={
            "cluster-a": [
                service("web", "cluster-a", FAMILY_SCENARIO_IN_USE[0]),
                service("worker", "cluster-a", FAMILY_SCENARIO_IN_USE[1]),
                service("cron", "cluster-a", FAMILY_SCENARIO_IN_USE[2]),
            ],
            "cluster-b": [service("api", "cluster-b", FAMILY_SCENARIO_IN_USE[3])],
            "cluster-empty": [],
        },
    )


@pytest.fixture
def fast_backoff() -> Backoff:
    """Backoff with millisecond delays and no jitter."""
    return Backoff(min=0.001, max=0.002, factor=2, jitter=False)


@pytest.fixture
def dry_run_config() -> CleanupConfig:
    return CleanupConfig(apply=False, cutoff=2, parallel=3)


@pytest.fixture
def apply_config() -> CleanupConfig:
    return CleanupConfig(apply=True, cutoff=2, parallel=3)
