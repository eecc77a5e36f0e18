import logging
import math
from collections import defaultdict
from datetime import datetime, timezone

from channel_insights.config import TOP_N
from channel_insights.errors import EmptyInputError
from channel_insights.models.content import ChannelInfo, ContentItem
from channel_insights.models.metrics import (
    Averages,
    ChannelMetrics,
    HourPerformance,
    MonthlyTrend,
    PerformanceRecord,
    TitleKeyword,
    TopPerformers,
    Totals,
    UploadPattern,
)

logger = logging.getLogger(__name__)

# (divisor, cap, weight) per factor; caps keep one viral outlier from dominating
VIEW_FACTOR = (1_000_000, 10, 0.3)
LIKE_FACTOR = (100_000, 10, 0.3)
COMMENT_FACTOR = (10_000, 10, 0.2)
ENGAGEMENT_FACTOR = (1, 10, 0.2)

TITLE_KEYWORD_MIN_LENGTH = 4
TITLE_KEYWORD_LIMIT = 10


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def engagement_rate(views: int, likes: int, comments: int) -> float:
    """(likes + comments) / views as a percentage with two decimals, 0 for no views."""
    if views <= 0:
        return 0.0
    return round((likes + comments) / views * 100, 2)


def performance_score(views: int, likes: int, comments: int, rate: float) -> float:
    score = 0.0
    for value, (divisor, cap, weight) in zip(
        (views, likes, comments, rate),
        (VIEW_FACTOR, LIKE_FACTOR, COMMENT_FACTOR, ENGAGEMENT_FACTOR),
    ):
        score += min(value / divisor, cap) * weight
    return round(score, 2)


def build_record(item: ContentItem) -> PerformanceRecord:
    rate = engagement_rate(item.views, item.likes, item.comments)
    return PerformanceRecord(
        item_id=item.id,
        title=item.title,
        published_at=item.published_at,
        views=item.views,
        likes=item.likes,
        comments=item.comments,
        engagement_rate=rate,
        performance_score=performance_score(item.views, item.likes, item.comments, rate),
    )


def _upload_pattern(records: list[PerformanceRecord]) -> UploadPattern:
    days = [0] * 7
    hours = [0] * 24
    hour_views = [0] * 24

    for record in records:
        published = _utc(record.published_at)
        days[published.weekday()] += 1
        hours[published.hour] += 1
        hour_views[published.hour] += record.views

    optimal = [
        HourPerformance(
            hour=hour,
            uploads=hours[hour],
            average_views=_round_half_up(hour_views[hour] / hours[hour]),
        )
        for hour in range(24)
        if hours[hour]
    ]
    optimal.sort(key=lambda h: h.average_views, reverse=True)

    # list.index returns the first maximum, so ties go to the earliest bucket
    return UploadPattern(
        day_distribution=days,
        hour_distribution=hours,
        most_popular_day=days.index(max(days)),
        most_popular_hour=hours.index(max(hours)),
        optimal_hours=optimal,
    )


def _monthly_trends(records: list[PerformanceRecord]) -> list[MonthlyTrend]:
    buckets: dict[str, list[PerformanceRecord]] = defaultdict(list)
    for record in records:
        published = _utc(record.published_at)
        buckets[f"{published.year:04d}-{published.month:02d}"].append(record)

    trends = []
    for month, group in buckets.items():
        count = len(group)
        total_views = sum(r.views for r in group)
        trends.append(MonthlyTrend(
            month=month,
            item_count=count,
            total_views=total_views,
            total_likes=sum(r.likes for r in group),
            total_comments=sum(r.comments for r in group),
            average_views=_round_half_up(total_views / count),
            average_engagement=round(sum(r.engagement_rate for r in group) / count, 2),
        ))

    trends.sort(key=lambda t: t.month, reverse=True)
    return trends


def _upload_frequency_days(records: list[PerformanceRecord]) -> int | None:
    if len(records) < 2:
        return None
    moments = sorted(_utc(r.published_at) for r in records)
    span_days = math.ceil((moments[-1] - moments[0]).total_seconds() / 86400)
    return _round_half_up(span_days / len(records))


def _title_keywords(records: list[PerformanceRecord]) -> list[TitleKeyword]:
    counts: dict[str, int] = defaultdict(int)
    views: dict[str, int] = defaultdict(int)
    for record in records:
        for word in record.title.lower().split():
            if len(word) >= TITLE_KEYWORD_MIN_LENGTH:
                counts[word] += 1
                views[word] += record.views

    keywords = [
        TitleKeyword(
            word=word,
            frequency=count,
            average_views=_round_half_up(views[word] / count),
        )
        for word, count in counts.items()
    ]
    keywords.sort(key=lambda k: k.average_views, reverse=True)
    return keywords[:TITLE_KEYWORD_LIMIT]


def aggregate(
    items: list[ContentItem],
    top_n: int = TOP_N,
    channel: ChannelInfo | None = None,
) -> ChannelMetrics:
    """Compute channel-wide metrics from per-item statistics.

    Raises:
        EmptyInputError: If ``items`` is empty.
    """
    if not items:
        raise EmptyInputError("No items to aggregate")

    records = [build_record(item) for item in items]
    count = len(records)

    totals = Totals(
        views=sum(r.views for r in records),
        likes=sum(r.likes for r in records),
        comments=sum(r.comments for r in records),
    )
    averages = Averages(
        views=_round_half_up(totals.views / count),
        likes=_round_half_up(totals.likes / count),
        comments=_round_half_up(totals.comments / count),
        engagement_rate=round(sum(r.engagement_rate for r in records) / count, 2),
    )

    # sorted() is stable with reverse=True, so input order breaks ties
    top_performers = TopPerformers(
        by_views=sorted(records, key=lambda r: r.views, reverse=True)[:top_n],
        by_engagement=sorted(records, key=lambda r: r.engagement_rate, reverse=True)[:top_n],
        by_score=sorted(records, key=lambda r: r.performance_score, reverse=True)[:top_n],
    )

    logger.info(
        "Aggregated %d items: avg views %d, avg engagement %.2f%%",
        count,
        averages.views,
        averages.engagement_rate,
    )

    return ChannelMetrics(
        total_items=count,
        totals=totals,
        averages=averages,
        top_performers=top_performers,
        upload_pattern=_upload_pattern(records),
        monthly_trends=_monthly_trends(records),
        upload_frequency_days=_upload_frequency_days(records),
        title_keywords=_title_keywords(records),
        records=records,
        channel=channel,
    )
