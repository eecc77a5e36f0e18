import asyncio

import pytest

from channel_insights.errors import InvalidSourceError, ProviderError
from channel_insights.services.youtube import YtDlpContentProvider, resolve_channel_url

CHANNEL_ID = "UC_x5XG1OV2P6uZZ5FSM9Ttw"


def test_resolve_channel_url():
    assert resolve_channel_url(CHANNEL_ID) == f"https://www.youtube.com/channel/{CHANNEL_ID}/videos"
    assert resolve_channel_url("@GoogleDevelopers") == "https://www.youtube.com/@GoogleDevelopers/videos"
    assert (
        resolve_channel_url(f"https://www.youtube.com/channel/{CHANNEL_ID}/featured")
        == f"https://www.youtube.com/channel/{CHANNEL_ID}/videos"
    )
    assert resolve_channel_url("youtube.com/@pycon") == "https://www.youtube.com/@pycon/videos"
    assert resolve_channel_url("https://m.youtube.com/c/Computerphile") == "https://www.youtube.com/c/Computerphile/videos"
    assert resolve_channel_url("https://www.youtube.com/user/numberphile") == "https://www.youtube.com/user/numberphile/videos"


def test_resolve_channel_url_rejects_other_references():
    for source in ("", "   ", "not a channel", "https://vimeo.com/@someone", "https://www.youtube.com/watch?v=abc"):
        with pytest.raises(InvalidSourceError) as info:
            resolve_channel_url(source)
        assert info.value.kind == "invalid_source"


class StubProvider(YtDlpContentProvider):
    """Serves canned yt-dlp info dicts instead of hitting the network."""

    def __init__(self, infos: dict):
        super().__init__()
        self.infos = infos

    def _extract(self, url: str, **options) -> dict:
        info = self.infos[url]
        if isinstance(info, Exception):
            raise info
        return info


def test_list_items_from_flat_playlist():
    provider = StubProvider({
        f"https://www.youtube.com/channel/{CHANNEL_ID}/videos": {
            "channel": "Google for Developers",
            "entries": [
                {"id": "a1", "title": "First", "view_count": 120, "duration": 61.0, "timestamp": 1709575200},
                None,
                {"id": "b2", "title": "Second", "upload_date": "20240301"},
            ],
        },
    })

    items = asyncio.run(provider.list_items(CHANNEL_ID, 10))

    assert [i.id for i in items] == ["a1", "b2"]
    assert items[0].duration == 61
    assert items[0].channel == "Google for Developers"
    assert items[0].url == "https://www.youtube.com/watch?v=a1"
    assert items[1].published_at.isoformat() == "2024-03-01T00:00:00+00:00"


def test_get_statistics_skips_failed_items():
    provider = StubProvider({
        "https://www.youtube.com/watch?v=a1": {"view_count": 100, "like_count": 7, "comment_count": 2},
        "https://www.youtube.com/watch?v=b2": RuntimeError("private video"),
    })

    statistics = asyncio.run(provider.get_statistics(["a1", "b2"]))

    assert [(s.item_id, s.views, s.likes, s.comments) for s in statistics] == [("a1", 100, 7, 2)]


def test_get_statistics_raises_when_every_item_fails():
    provider = StubProvider({"https://www.youtube.com/watch?v=a1": RuntimeError("HTTP Error 429")})

    with pytest.raises(ProviderError) as info:
        asyncio.run(provider.get_statistics(["a1"]))

    assert info.value.retry_after == 60.0


def test_list_comments_keeps_top_level_only():
    provider = StubProvider({
        "https://www.youtube.com/watch?v=a1": {
            "title": "First",
            "comments": [
                {"id": "x", "text": "Great video", "like_count": 3, "parent": "root"},
                {"id": "x.1", "text": "Agreed", "parent": "x"},
                {"id": "y", "text": "More please", "like_count": None},
            ],
        },
    })

    comments = asyncio.run(provider.list_comments("a1", 10))

    assert [c.id for c in comments] == ["x", "y"]
    assert comments[1].like_count == 0
    assert all(c.item_title == "First" and c.item_id == "a1" for c in comments)


class CountingStub(StubProvider):
    def __init__(self, infos: dict):
        super().__init__(infos)
        self.urls: list[str] = []

    def _extract(self, url: str, **options) -> dict:
        self.urls.append(url)
        return super()._extract(url, **options)


def test_get_channel_reuses_the_listing():
    videos_url = f"https://www.youtube.com/channel/{CHANNEL_ID}/videos"
    provider = CountingStub({
        videos_url: {
            "channel": "Google for Developers",
            "channel_id": CHANNEL_ID,
            "channel_url": f"https://www.youtube.com/channel/{CHANNEL_ID}",
            "channel_follower_count": 2510000,
            "entries": [{"id": "a1", "title": "First"}],
        },
    })

    asyncio.run(provider.list_items(CHANNEL_ID, 5))
    channel = asyncio.run(provider.get_channel(CHANNEL_ID))

    assert channel.id == CHANNEL_ID
    assert channel.name == "Google for Developers"
    assert channel.subscribers == 2510000
    assert provider.urls == [videos_url]


def test_get_channel_without_follower_count():
    provider = StubProvider({
        "https://www.youtube.com/@pycon/videos": {"uploader": "PyCon", "id": "UCpycon", "entries": []},
    })

    channel = asyncio.run(provider.get_channel("@pycon"))

    assert channel.name == "PyCon"
    assert channel.id == "UCpycon"
    assert channel.subscribers is None
    assert channel.url == "https://www.youtube.com/@pycon/videos"
