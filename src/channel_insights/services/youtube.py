import asyncio
import logging
import re
from datetime import datetime, timezone
from urllib.parse import urlparse

import yt_dlp
from yt_dlp.utils import DownloadError

from channel_insights.errors import InvalidSourceError, ProviderError
from channel_insights.models.content import ChannelInfo, Comment, ContentItem, ItemStatistics
from channel_insights.services.base import ContentProvider

logger = logging.getLogger(__name__)

CHANNEL_ID_PATTERN = re.compile(r"^UC[\w-]{22}$")
HANDLE_PATTERN = re.compile(r"^@[\w.-]+$")
URL_PATTERNS = [
    ("channel/", re.compile(r"^/channel/([\w-]+)")),
    ("c/", re.compile(r"^/c/([\w.-]+)")),
    ("user/", re.compile(r"^/user/([\w.-]+)")),
    ("", re.compile(r"^/(@[\w.-]+)")),
]

RATE_LIMIT_RETRY_AFTER = 60.0


def resolve_channel_url(source_id: str) -> str:
    """Turn a channel id, handle or channel URL into its videos-tab URL."""
    source = (source_id or "").strip()
    if not source:
        raise InvalidSourceError("A channel id, handle or URL is required")

    if CHANNEL_ID_PATTERN.match(source):
        return f"https://www.youtube.com/channel/{source}/videos"
    if HANDLE_PATTERN.match(source):
        return f"https://www.youtube.com/{source}/videos"

    parsed = urlparse(source if "://" in source else f"https://{source}")
    hostname = parsed.hostname or ""
    if hostname.endswith("youtube.com"):
        for prefix, pattern in URL_PATTERNS:
            match = pattern.match(parsed.path)
            if match:
                return f"https://www.youtube.com/{prefix}{match.group(1)}/videos"

    raise InvalidSourceError(
        f"Invalid YouTube channel reference: {source_id}",
        {"source_id": source_id},
    )


def _video_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def _parse_published(info: dict) -> datetime | None:
    timestamp = info.get("timestamp") or info.get("release_timestamp")
    if timestamp:
        try:
            return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
        except (ValueError, TypeError, OSError):
            pass

    upload_date = info.get("upload_date")
    if upload_date:
        try:
            return datetime.strptime(upload_date, "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            pass

    return None


def _channel_info(info: dict, channel_url: str) -> ChannelInfo:
    followers = info.get("channel_follower_count")
    return ChannelInfo(
        id=info.get("channel_id") or info.get("id") or "",
        name=info.get("channel") or info.get("uploader") or info.get("title") or "",
        url=info.get("channel_url") or info.get("uploader_url") or channel_url,
        subscribers=int(followers) if followers is not None else None,
        description=info.get("description") or "",
    )


def _provider_error(action: str, exc: Exception) -> ProviderError:
    message = str(exc)
    retry_after = None
    if "429" in message or "rate" in message.lower():
        retry_after = RATE_LIMIT_RETRY_AFTER
    return ProviderError(f"Failed to {action}: {message}", retry_after=retry_after)


class YtDlpContentProvider(ContentProvider):
    """Content provider backed by yt-dlp metadata extraction.

    yt-dlp is blocking, so every extraction runs in a worker thread.
    """

    def __init__(self, ydl_options: dict | None = None):
        self.ydl_options = {"quiet": True, "no_warnings": True, **(ydl_options or {})}
        self._channels: dict[str, ChannelInfo] = {}

    def _extract(self, url: str, **options) -> dict:
        with yt_dlp.YoutubeDL({**self.ydl_options, **options}) as ydl:
            return ydl.extract_info(url, download=False) or {}

    async def _channel_listing(self, source_id: str, max_items: int) -> dict:
        channel_url = resolve_channel_url(source_id)
        logger.info("Listing up to %d items from %s", max_items, channel_url)

        try:
            info = await asyncio.to_thread(
                self._extract, channel_url, extract_flat=True, playlistend=max_items
            )
        except DownloadError as exc:
            raise _provider_error(f"list items for {source_id}", exc) from exc

        self._channels[source_id] = _channel_info(info, channel_url)
        return info

    async def list_items(self, source_id: str, max_items: int) -> list[ContentItem]:
        info = await self._channel_listing(source_id, max_items)

        channel = info.get("channel") or info.get("uploader") or ""
        items = []
        for entry in (info.get("entries") or [])[:max_items]:
            if not entry or not entry.get("id"):
                continue
            items.append(ContentItem(
                id=entry["id"],
                title=entry.get("title") or "",
                published_at=_parse_published(entry) or datetime.now(timezone.utc),
                views=entry.get("view_count") or 0,
                duration=int(entry["duration"]) if entry.get("duration") is not None else None,
                url=entry.get("url") or _video_url(entry["id"]),
                channel=channel,
            ))

        return items

    async def get_channel(self, source_id: str) -> ChannelInfo | None:
        """Channel metadata, reusing the listing fetched by :meth:`list_items` when present."""
        if source_id not in self._channels:
            await self._channel_listing(source_id, 1)
        return self._channels[source_id]

    async def _fetch_statistics(self, item_id: str) -> ItemStatistics:
        info = await asyncio.to_thread(self._extract, _video_url(item_id), skip_download=True)
        duration = info.get("duration")
        return ItemStatistics(
            item_id=item_id,
            views=info.get("view_count") or 0,
            likes=info.get("like_count") or 0,
            comments=info.get("comment_count") or 0,
            duration=int(duration) if duration is not None else None,
            published_at=_parse_published(info),
            title=info.get("title"),
        )

    async def get_statistics(self, item_ids: list[str]) -> list[ItemStatistics]:
        if not item_ids:
            return []

        results = await asyncio.gather(
            *(self._fetch_statistics(item_id) for item_id in item_ids),
            return_exceptions=True,
        )

        statistics = []
        errors = []
        for item_id, result in zip(item_ids, results):
            if isinstance(result, Exception):
                logger.warning("Failed to get statistics for %s: %s", item_id, result)
                errors.append(result)
                continue
            statistics.append(result)

        if not statistics:
            raise _provider_error(
                f"get statistics for {len(item_ids)} items", errors[0]
            ) from errors[0]

        return statistics

    async def list_comments(self, item_id: str, max_comments: int) -> list[Comment]:
        options = {
            "skip_download": True,
            "getcomments": True,
            "extractor_args": {
                "youtube": {
                    "max_comments": [str(max_comments)],
                    "comment_sort": ["top"],
                },
            },
        }
        try:
            info = await asyncio.to_thread(self._extract, _video_url(item_id), **options)
        except DownloadError as exc:
            raise _provider_error(f"list comments for {item_id}", exc) from exc

        comments = []
        for raw in info.get("comments") or []:
            if raw.get("parent", "root") != "root":
                continue
            comments.append(Comment(
                id=str(raw.get("id", "")),
                text=raw.get("text") or "",
                author=raw.get("author") or "",
                like_count=raw.get("like_count") or 0,
                published_at=_parse_published(raw),
                item_id=item_id,
                item_title=info.get("title"),
            ))
            if len(comments) >= max_comments:
                break

        return comments
