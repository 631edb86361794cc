"""Computation of the task definitions that are safe to deregister."""

import structlog

from ecs_cleaner.core.arn import family_of
from ecs_cleaner.core.errors import MalformedArnError
from ecs_cleaner.core.sets import remove_a_from_b
from ecs_cleaner.providers.base import ECSProviderBase
from ecs_cleaner.schemas.ecs import Service
from ecs_cleaner.schemas.report import FilterResult
from ecs_cleaner.services.collector import ProgressCallback, collect_pages

logger = structlog.get_logger()


def in_use_families(in_use_arns: list[str]) -> list[str]:
    """
    Family names referenced by the in-use revisions, de-duplicated in order.

    Malformed ARNs are skipped with a warning: they stay protected as in-use
    revisions, but no family is scanned for them.
    """
    families: dict[str, None] = {}
    for arn in in_use_arns:
        try:
            families[family_of(arn)] = None
        except MalformedArnError as e:
            logger.warning("filter.malformed_in_use_arn", arn=arn, reason=e.reason)
    return list(families)


async def filter_task_definitions(
    provider: ECSProviderBase,
    all_arns: list[str],
    services: list[Service],
    cutoff: int,
    on_progress: ProgressCallback | None = None,
) -> FilterResult:
    """
    Remove in-use and recently used task definitions from the inventory.

    1. Every service's current task definition is in use and never deleted.
    2. For each family with at least one in-use revision, the ``cutoff`` most
       recent revisions that are *not* in use are kept as a rollback margin.
       The ordering comes from ECS (``sort="DESC"``), not from local parsing.

    Families with no in-use revision are not scanned, so all of their
    revisions end up deletable.

    Args:
        provider: ECS provider used for the per-family listings
        all_arns: Every task definition ARN of the account
        services: Described services
        cutoff: Recent unused revisions to keep per in-use family
        on_progress: Optional (label, count) pagination progress callback

    Returns:
        FilterResult with the deletable ARNs and the sets behind them
    """
    in_use = [service.task_definition for service in services]
    logger.info("filter.in_use", total_in_use=len(in_use))

    remaining = remove_a_from_b(in_use, all_arns)
    logger.info("filter.remaining", total_remaining=len(remaining))

    families = in_use_families(in_use)
    protected: list[str] = []

    for family in families:

        async def fetch(next_token: str | None, family: str = family):
            return await provider.list_task_definitions(
                family_prefix=family, sort="DESC", next_token=next_token
            )

        family_arns = await collect_pages(
            fetch, label=f"family {family}", on_progress=on_progress
        )
        recent_unused = remove_a_from_b(in_use, family_arns)[:cutoff]
        protected.extend(recent_unused)

        logger.debug(
            "filter.family_scanned",
            family=family,
            total_revisions=len(family_arns),
            protected=len(recent_unused),
        )

    logger.info(
        "filter.protected",
        total_protected=len(protected),
        total_families=len(families),
        cutoff=cutoff,
    )

    deletable = remove_a_from_b(protected, remaining)
    logger.info("filter.deletable", total_deletable=len(deletable))

    return FilterResult(
        in_use=in_use,
        remaining_count=len(remaining),
        families=families,
        protected=protected,
        deletable=deletable,
    )
