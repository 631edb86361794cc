"""Inventory resolver: clusters, services and task definitions of an account.

Builds the read-only picture the retirement filter works from. Nothing here
mutates remote state.
"""

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ecs_cleaner.providers.base import ECSProviderBase
from ecs_cleaner.schemas.ecs import Service
from ecs_cleaner.services.collector import ProgressCallback, collect_pages

logger = structlog.get_logger()

# DescribeServices accepts at most 10 services per call
DESCRIBE_SERVICES_BATCH_SIZE = 10


def chunked(items: list[str], size: int) -> list[list[str]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    return [items[i : i + size] for i in range(0, len(items), size)]


class InventoryResolver:
    """Enumerates the ECS inventory of the configured account and region."""

    def __init__(
        self,
        provider: ECSProviderBase,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """
        Initialize inventory resolver.

        Args:
            provider: ECS provider with an open session
            on_progress: Optional (label, count) callback for pagination progress
        """
        self.provider = provider
        self.on_progress = on_progress

    async def collect_clusters(self) -> list[str]:
        """Return the ARNs of every cluster."""
        logger.info("inventory.collect_clusters_start")

        cluster_arns = await collect_pages(
            self.provider.list_clusters, label="clusters", on_progress=self.on_progress
        )

        logger.info("inventory.collect_clusters_complete", total_clusters=len(cluster_arns))
        return cluster_arns

    async def collect_services(self, cluster_arns: list[str]) -> dict[str, list[str]]:
        """
        Return the service ARNs of each cluster.

        Every cluster gets a key, clusters without services map to an empty list.
        """
        logger.info("inventory.collect_services_start", total_clusters=len(cluster_arns))

        services_by_cluster: dict[str, list[str]] = {}
        total_services = 0

        for cluster_arn in cluster_arns:

            async def fetch(next_token: str | None, cluster_arn: str = cluster_arn):
                return await self.provider.list_services(cluster_arn, next_token)

            service_arns = await collect_pages(
                fetch, label="services", on_progress=self._offset_progress(total_services)
            )
            services_by_cluster[cluster_arn] = service_arns
            total_services += len(service_arns)

        logger.info("inventory.collect_services_complete", total_services=total_services)
        return services_by_cluster

    async def describe_services(self, services_by_cluster: dict[str, list[str]]) -> list[Service]:
        """
        Describe every service, in batches of DESCRIBE_SERVICES_BATCH_SIZE per cluster.

        A batch that fails is logged and skipped; the other batches still count.
        """
        logger.info("inventory.describe_services_start")

        services: list[Service] = []
        failed_batches = 0

        for cluster_arn, service_arns in services_by_cluster.items():
            for chunk in chunked(service_arns, DESCRIBE_SERVICES_BATCH_SIZE):
                try:
                    described = await self.provider.describe_services(cluster_arn, chunk)
                except (ClientError, BotoCoreError) as e:
                    failed_batches += 1
                    logger.warning(
                        "inventory.describe_services_failed",
                        cluster=cluster_arn,
                        services=len(chunk),
                        error=str(e),
                    )
                    continue

                services.extend(described)

        logger.info(
            "inventory.describe_services_complete",
            total_services=len(services),
            failed_batches=failed_batches,
        )
        return services

    async def collect_task_definitions(self) -> list[str]:
        """Return every task definition ARN in the account, regardless of family."""
        logger.info("inventory.collect_task_definitions_start")

        async def fetch(next_token: str | None):
            return await self.provider.list_task_definitions(next_token=next_token)

        task_definition_arns = await collect_pages(
            fetch, label="task definitions", on_progress=self.on_progress
        )

        logger.info(
            "inventory.collect_task_definitions_complete",
            total_task_definitions=len(task_definition_arns),
        )
        return task_definition_arns

    def _offset_progress(self, offset: int) -> ProgressCallback | None:
        """Report per-cluster service counts as a running account-wide total."""
        if self.on_progress is None:
            return None

        on_progress = self.on_progress

        def report(label: str, count: int) -> None:
            on_progress(label, offset + count)

        return report
