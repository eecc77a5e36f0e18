import operator
from typing import Annotated, TypedDict

from channel_insights.models.comments import ClassificationResult
from channel_insights.models.content import ContentItem
from channel_insights.models.idea import Idea
from channel_insights.models.metrics import ChannelMetrics


class PipelineState(TypedDict, total=False):
    # User inputs
    source_id: str
    max_items: int
    max_comments: int
    custom_prompt: str | None
    # Intermediate state
    items: list[ContentItem]
    metrics: ChannelMetrics
    comments: ClassificationResult | None
    ideas: list[Idea]
    # Control; branches running in the same step may both append
    failures: Annotated[list[str], operator.add]
