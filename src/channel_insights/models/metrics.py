from datetime import datetime

from pydantic import BaseModel, Field

from channel_insights.models.analysis import ChannelAnalysis
from channel_insights.models.content import ChannelInfo

DAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]


class PerformanceRecord(BaseModel):
    item_id: str
    title: str
    published_at: datetime
    views: int
    likes: int
    comments: int
    engagement_rate: float
    performance_score: float


class Totals(BaseModel):
    views: int
    likes: int
    comments: int


class Averages(BaseModel):
    views: int
    likes: int
    comments: int
    engagement_rate: float


class TopPerformers(BaseModel):
    by_views: list[PerformanceRecord]
    by_engagement: list[PerformanceRecord]
    by_score: list[PerformanceRecord]


class HourPerformance(BaseModel):
    hour: int
    uploads: int
    average_views: int


class UploadPattern(BaseModel):
    day_distribution: list[int] = Field(min_length=7, max_length=7)
    hour_distribution: list[int] = Field(min_length=24, max_length=24)
    most_popular_day: int
    most_popular_hour: int
    optimal_hours: list[HourPerformance] = []

    @property
    def most_popular_day_name(self) -> str:
        return DAY_NAMES[self.most_popular_day]


class MonthlyTrend(BaseModel):
    month: str
    item_count: int
    total_views: int
    total_likes: int
    total_comments: int
    average_views: int
    average_engagement: float


class TitleKeyword(BaseModel):
    word: str
    frequency: int
    average_views: int


class ChannelMetrics(BaseModel):
    total_items: int
    totals: Totals
    averages: Averages
    top_performers: TopPerformers
    upload_pattern: UploadPattern
    monthly_trends: list[MonthlyTrend]
    upload_frequency_days: int | None = None
    title_keywords: list[TitleKeyword] = []
    records: list[PerformanceRecord]
    channel: ChannelInfo | None = None
    ai_analysis: ChannelAnalysis | None = None
