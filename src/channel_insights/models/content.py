from datetime import datetime

from pydantic import BaseModel, ConfigDict, NonNegativeInt


class _FrozenModel(BaseModel):
    """Base model for records that must not change once fetched."""
    model_config = ConfigDict(frozen=True)


class ItemStatistics(_FrozenModel):
    item_id: str
    views: NonNegativeInt = 0
    likes: NonNegativeInt = 0
    comments: NonNegativeInt = 0
    duration: int | None = None
    published_at: datetime | None = None
    title: str | None = None


class ContentItem(_FrozenModel):
    id: str
    title: str = ""
    published_at: datetime
    views: NonNegativeInt = 0
    likes: NonNegativeInt = 0
    comments: NonNegativeInt = 0
    duration: int | None = None
    url: str = ""
    channel: str = ""

    def with_statistics(self, stats: ItemStatistics) -> "ContentItem":
        update = {
            "views": stats.views,
            "likes": stats.likes,
            "comments": stats.comments,
        }
        if stats.duration is not None:
            update["duration"] = stats.duration
        if stats.published_at is not None:
            update["published_at"] = stats.published_at
        if stats.title:
            update["title"] = stats.title
        return self.model_copy(update=update)


class Comment(_FrozenModel):
    id: str
    text: str
    author: str = ""
    like_count: NonNegativeInt = 0
    published_at: datetime | None = None
    item_id: str = ""
    item_title: str | None = None


class ChannelInfo(_FrozenModel):
    id: str
    name: str = ""
    url: str = ""
    subscribers: NonNegativeInt | None = None
    description: str = ""
