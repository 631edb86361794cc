"""Cursor-following collection over paginated ECS listings."""

from collections.abc import Awaitable, Callable

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ecs_cleaner.schemas.ecs import Page

logger = structlog.get_logger()

ProgressCallback = Callable[[str, int], None]
PageFetcher = Callable[[str | None], Awaitable[Page]]


async def collect_pages(
    fetch_page: PageFetcher,
    *,
    label: str,
    on_progress: ProgressCallback | None = None,
) -> list[str]:
    """
    Drain a paginated listing.

    ``fetch_page`` is called with ``None`` first and then with each returned
    continuation token until a page comes back without one. A page that fails
    is logged and ends the loop, so the result is best-effort complete: there is
    no token to continue from, and failed pages are not retried inline.

    Args:
        fetch_page: Coroutine function taking a continuation token
        label: Name of what is being listed, used in logs and progress
        on_progress: Called with (label, items so far) after every page

    Returns:
        All items, in listing order
    """
    items: list[str] = []
    next_token: str | None = None
    pages = 0

    while True:
        try:
            page = await fetch_page(next_token)
        except (ClientError, BotoCoreError) as e:
            logger.warning(
                "collector.page_failed",
                label=label,
                page=pages + 1,
                collected=len(items),
                error=str(e),
            )
            break

        pages += 1
        items.extend(page.items)

        logger.debug("collector.page", label=label, page=pages, collected=len(items))
        if on_progress is not None:
            on_progress(label, len(items))

        if not page.next_token:
            break
        next_token = page.next_token

    return items
