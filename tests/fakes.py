import asyncio
import json
from datetime import datetime, timedelta, timezone

from channel_insights.errors import ProviderError
from channel_insights.models.content import ChannelInfo, Comment, ContentItem, ItemStatistics
from channel_insights.services.base import ContentProvider, GenerativeBackend

BASE_TIME = datetime(2024, 3, 4, 18, 0, tzinfo=timezone.utc)  # a Monday


def make_item(
    item_id: str,
    views: int = 0,
    likes: int = 0,
    comments: int = 0,
    published_at: datetime | None = None,
    title: str | None = None,
) -> ContentItem:
    return ContentItem(
        id=item_id,
        title=title or f"Video {item_id}",
        published_at=published_at or BASE_TIME,
        views=views,
        likes=likes,
        comments=comments,
    )


def make_comment(comment_id: str, text: str, like_count: int = 0, item_id: str = "v1") -> Comment:
    return Comment(
        id=comment_id,
        text=text,
        author=f"user-{comment_id}",
        like_count=like_count,
        published_at=BASE_TIME,
        item_id=item_id,
    )


def fenced(payload) -> str:
    return f"Here you go:\n```json\n{json.dumps(payload)}\n```\nHope it helps!"


class ScriptedBackend(GenerativeBackend):
    """Answers per model name: a string, an exception to raise, or a callable."""

    def __init__(self, responses: dict, delay: float = 0.0):
        self.responses = responses
        self.delay = delay
        self.calls: list[str] = []

    async def complete(self, prompt: str, model_name: str) -> str:
        self.calls.append(model_name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if model_name not in self.responses:
            raise ValueError(f"Unknown model {model_name}")
        response = self.responses[model_name]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(prompt)
        return response


class FakeProvider(ContentProvider):
    def __init__(
        self,
        items: list[ContentItem],
        statistics: dict[str, ItemStatistics] | None = None,
        comments: dict[str, list[Comment]] | None = None,
        comment_error: Exception | None = None,
        list_error: Exception | None = None,
        channel: ChannelInfo | None = None,
    ):
        self.items = items
        self.statistics = statistics
        self.comments = comments or {}
        self.comment_error = comment_error
        self.list_error = list_error
        self.channel = channel
        self.comment_requests: list[str] = []

    async def list_items(self, source_id: str, max_items: int) -> list[ContentItem]:
        if self.list_error is not None:
            raise self.list_error
        return self.items[:max_items]

    async def get_statistics(self, item_ids: list[str]) -> list[ItemStatistics]:
        if self.statistics is None:
            by_id = {item.id: item for item in self.items}
            return [
                ItemStatistics(
                    item_id=i,
                    views=by_id[i].views,
                    likes=by_id[i].likes,
                    comments=by_id[i].comments,
                )
                for i in item_ids
                if i in by_id
            ]
        return [self.statistics[i] for i in item_ids if i in self.statistics]

    async def list_comments(self, item_id: str, max_comments: int) -> list[Comment]:
        self.comment_requests.append(item_id)
        if self.comment_error is not None:
            raise self.comment_error
        return self.comments.get(item_id, [])[:max_comments]

    async def get_channel(self, source_id: str) -> ChannelInfo | None:
        return self.channel


def spaced_items(count: int, start: datetime = BASE_TIME, step: timedelta = timedelta(days=7)):
    return [
        make_item(f"v{i}", views=(i + 1) * 100, likes=(i + 1) * 10, comments=(i + 1) * 5,
                  published_at=start + step * i)
        for i in range(count)
    ]


PROVIDER_DOWN = ProviderError("Failed to list comments: HTTP Error 429", retry_after=60.0)
