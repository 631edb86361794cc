"""Task definition cleanup pipeline: resolve inventory, filter, deregister."""

import structlog

from ecs_cleaner.providers.base import ECSProviderBase
from ecs_cleaner.schemas.cleanup import CleanupConfig
from ecs_cleaner.schemas.report import CleanupReport
from ecs_cleaner.services.collector import ProgressCallback
from ecs_cleaner.services.inventory import InventoryResolver
from ecs_cleaner.services.retirement_filter import filter_task_definitions
from ecs_cleaner.workers.backoff import Backoff
from ecs_cleaner.workers.scheduler import RetirementScheduler

logger = structlog.get_logger()


class TaskDefinitionCleaner:
    """Runs one cleanup of unused task definitions."""

    def __init__(
        self,
        provider: ECSProviderBase,
        config: CleanupConfig,
        backoff: Backoff | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """
        Initialize task definition cleaner.

        Args:
            provider: ECS provider with an open session
            config: Run configuration
            backoff: Throttling backoff policy for the scheduler
            on_progress: Optional (label, count) progress callback
        """
        self.provider = provider
        self.config = config
        self.backoff = backoff
        self.on_progress = on_progress
        self.resolver = InventoryResolver(provider, on_progress=on_progress)

    async def run(self) -> CleanupReport:
        """
        Execute the cleanup.

        In dry-run mode (``config.apply`` False) the full inventory and filter
        stages run, and nothing is deregistered.

        Returns:
            Report of counts per stage and, when applied, deregistration tallies

        Raises:
            Exception: A fatal error raised during deregistration
        """
        logger.info(
            "cleanup.start",
            apply=self.config.apply,
            cutoff=self.config.cutoff,
            parallel=self.config.parallel,
        )

        all_arns = await self.resolver.collect_task_definitions()
        cluster_arns = await self.resolver.collect_clusters()
        services_by_cluster = await self.resolver.collect_services(cluster_arns)
        services = await self.resolver.describe_services(services_by_cluster)

        filtered = await filter_task_definitions(
            self.provider,
            all_arns,
            services,
            self.config.cutoff,
            on_progress=self.on_progress,
        )

        report = CleanupReport(
            applied=self.config.apply,
            clusters=len(cluster_arns),
            services=sum(len(arns) for arns in services_by_cluster.values()),
            described_services=len(services),
            task_definitions=len(all_arns),
            in_use=len(filtered.in_use),
            remaining=filtered.remaining_count,
            families=len(filtered.families),
            protected=len(filtered.protected),
            deletable=len(filtered.deletable),
            in_use_arns=filtered.in_use,
            protected_arns=filtered.protected,
            deletable_arns=filtered.deletable,
        )

        if self.config.apply and filtered.deletable:
            scheduler = RetirementScheduler(
                self.provider,
                parallel=self.config.parallel,
                backoff=self.backoff,
                on_progress=self.on_progress,
            )
            report.retirement = await scheduler.deregister_task_definitions(filtered.deletable)
        elif not self.config.apply:
            logger.info("cleanup.dry_run", deletable=len(filtered.deletable))

        logger.info("cleanup.complete", deletable=report.deletable, applied=report.applied)
        return report
