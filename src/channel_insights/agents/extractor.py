import asyncio
import logging
import math

from channel_insights.config import COMMENTS_PER_ITEM, PROVIDER_TIMEOUT
from channel_insights.deadline import with_deadline
from channel_insights.errors import AnalyzerError, EmptyInputError, ProviderError
from channel_insights.models.content import ChannelInfo, Comment, ContentItem
from channel_insights.services.base import ContentProvider

logger = logging.getLogger(__name__)


async def list_source_items(
    provider: ContentProvider,
    source_id: str,
    limit: int,
    timeout: float | None = PROVIDER_TIMEOUT,
) -> list[ContentItem]:
    items = await with_deadline(
        provider.list_items(source_id, limit), timeout, f"list items of {source_id}"
    )
    if not items:
        raise EmptyInputError(f"No items found for {source_id}", {"source_id": source_id})
    logger.info("Found %d items for %s", len(items), source_id)
    return items


async def attach_statistics(
    provider: ContentProvider,
    items: list[ContentItem],
    timeout: float | None = PROVIDER_TIMEOUT,
) -> list[ContentItem]:
    """Merge fetched statistics into items; items without statistics are dropped.

    Raises:
        ProviderError: If no item has statistics.
    """
    statistics = await with_deadline(
        provider.get_statistics([item.id for item in items]),
        timeout,
        f"get statistics for {len(items)} items",
    )
    by_id = {stats.item_id: stats for stats in statistics}

    merged = []
    for item in items:
        stats = by_id.get(item.id)
        if stats is None:
            logger.warning("No statistics for %s, skipping", item.id)
            continue
        merged.append(item.with_statistics(stats))

    if items and not merged:
        raise ProviderError(
            f"No statistics available for any of {len(items)} items",
            details={"item_ids": [item.id for item in items]},
        )
    return merged


async def run_extractor(
    provider: ContentProvider,
    source_id: str,
    limit: int,
    timeout: float | None = PROVIDER_TIMEOUT,
) -> list[ContentItem]:
    items = await list_source_items(provider, source_id, limit, timeout)
    return await attach_statistics(provider, items, timeout)


async def fetch_channel(
    provider: ContentProvider,
    source_id: str,
    timeout: float | None = PROVIDER_TIMEOUT,
) -> ChannelInfo | None:
    """Channel metadata, or None when the provider cannot describe the source."""
    try:
        return await with_deadline(
            provider.get_channel(source_id), timeout, f"get channel {source_id}"
        )
    except AnalyzerError as exc:
        logger.warning("No channel metadata for %s: %s", source_id, exc)
        return None


def _as_provider_error(item_id: str, exc: Exception) -> AnalyzerError:
    if isinstance(exc, AnalyzerError):
        return exc
    error = ProviderError(f"Failed to list comments of {item_id}: {exc}")
    error.__cause__ = exc
    return error


async def extract_comments(
    provider: ContentProvider,
    items: list[ContentItem],
    max_comments: int,
    per_item: int = COMMENTS_PER_ITEM,
    timeout: float | None = PROVIDER_TIMEOUT,
) -> list[Comment]:
    """Fetch comments for the first items concurrently, up to ``max_comments``.

    A failed item is logged and skipped; unexpected provider exceptions are
    wrapped as ``ProviderError``. Only when every item fails is the first
    error raised.
    """
    if not items or max_comments <= 0:
        return []

    per_item = max(1, min(per_item, max_comments))
    targets = items[:math.ceil(max_comments / per_item)]

    results = await asyncio.gather(
        *(
            with_deadline(
                provider.list_comments(item.id, per_item), timeout, f"list comments of {item.id}"
            )
            for item in targets
        ),
        return_exceptions=True,
    )

    comments: list[Comment] = []
    errors: list[AnalyzerError] = []
    for item, result in zip(targets, results):
        if isinstance(result, Exception):
            error = _as_provider_error(item.id, result)
            logger.warning("Failed to get comments for %s: %s", item.id, error)
            errors.append(error)
            continue
        if isinstance(result, BaseException):
            raise result
        comments.extend(
            c if c.item_title else c.model_copy(update={"item_title": item.title})
            for c in result
        )

    if errors and len(errors) == len(targets):
        raise errors[0]

    return comments[:max_comments]


async def extract_item_comments(
    provider: ContentProvider,
    item_id: str,
    max_comments: int,
    timeout: float | None = PROVIDER_TIMEOUT,
) -> list[Comment]:
    return await with_deadline(
        provider.list_comments(item_id, max_comments), timeout, f"list comments of {item_id}"
    )
