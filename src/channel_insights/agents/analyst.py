import logging

from channel_insights.agents.orchestrator import GenerationOrchestrator
from channel_insights.config import ANALYSIS_COMMENT_LIMIT, TOP_N
from channel_insights.errors import GenerationExhaustedError, OperationTimeoutError
from channel_insights.models.analysis import ChannelAnalysis, RawAnalysis
from channel_insights.models.content import Comment
from channel_insights.models.metrics import ChannelMetrics

logger = logging.getLogger(__name__)

COMMENT_PREVIEW_LENGTH = 100

ANALYSIS_SHAPE = {
    "summary": "Two or three sentences on where the channel stands",
    "trends": "What the best performing videos have in common",
    "contentStrategy": "Themes and formats the audience responds to",
    "postingOptimization": "When and how often to publish, with reasons",
    "nextVideoIdeas": ["Concrete next video, with the reason it should work"],
    "improvements": ["Specific advice for raising engagement"],
}


def channel_line(metrics: ChannelMetrics) -> str:
    channel = metrics.channel
    if channel is None or not channel.name:
        return ""
    if channel.subscribers is None:
        return f"Channel: {channel.name}"
    return f"Channel: {channel.name} ({channel.subscribers:,} subscribers)"


def build_analysis_prompt(
    metrics: ChannelMetrics,
    comments: list[Comment] | None = None,
    comment_limit: int = ANALYSIS_COMMENT_LIMIT,
    top_n: int = TOP_N,
) -> str:
    averages = metrics.averages
    pattern = metrics.upload_pattern
    top_items = "\n".join(
        f'{i}. "{r.title}" - {r.views:,} views'
        for i, r in enumerate(metrics.top_performers.by_views[:top_n], 1)
    )
    quoted = "\n".join(
        f'- "{c.text[:COMMENT_PREVIEW_LENGTH]}"' for c in (comments or [])[:comment_limit]
    )
    comments_section = f"\n## REPRESENTATIVE COMMENTS:\n{quoted}\n" if quoted else ""
    header = channel_line(metrics)

    return f"""Analyze this YouTube channel's recent videos and propose a strategy for its next uploads.
{header}

## PERFORMANCE ({metrics.total_items} videos analyzed):
- Average views: {averages.views:,}
- Average likes: {averages.likes:,}
- Average comments: {averages.comments:,}
- Average engagement rate: {averages.engagement_rate:.2f}%

## TOP VIDEOS:
{top_items}

## UPLOAD PATTERN:
- Most frequent upload day: {pattern.most_popular_day_name}
- Most frequent upload hour (UTC): {pattern.most_popular_hour}:00
{comments_section}
Cover trends shared by the top videos, the content strategy the audience rewards,
posting optimization, 3-5 concrete next video ideas and engagement improvements.
Give the reason behind every recommendation."""


def degraded_analysis(
    metrics: ChannelMetrics,
    reason: str,
    model_text: str | None = None,
) -> ChannelAnalysis:
    """Analysis built from metrics alone, used when no model produced one."""
    pattern = metrics.upload_pattern
    top = metrics.top_performers.by_views[0] if metrics.top_performers.by_views else None
    trends = ""
    if top is not None:
        trends = (
            f'"{top.title}" leads with {top.views:,} views against an average of '
            f"{metrics.averages.views:,}."
        )

    return ChannelAnalysis(
        summary=f"AI analysis was unavailable: {reason}",
        trends=trends,
        posting_optimization=(
            f"Most uploads go out on {pattern.most_popular_day_name} around "
            f"{pattern.most_popular_hour}:00 UTC."
        ),
        degraded=True,
        error=reason,
        raw_text=model_text.strip() if model_text and model_text.strip() else None,
    )


def _text(value: str | None) -> str:
    return value.strip() if value else ""


class ChannelAnalyst:
    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        comment_limit: int = ANALYSIS_COMMENT_LIMIT,
    ):
        self.orchestrator = orchestrator
        self.comment_limit = comment_limit

    async def analyze(
        self,
        metrics: ChannelMetrics,
        comments: list[Comment] | None = None,
    ) -> ChannelAnalysis:
        """Model-written strategy analysis, or a degraded one if every model fails."""
        prompt = build_analysis_prompt(metrics, comments, self.comment_limit)

        try:
            raw = await self.orchestrator.generate_typed(prompt, RawAnalysis, ANALYSIS_SHAPE)
        except GenerationExhaustedError as exc:
            logger.warning("Channel analysis exhausted, returning degraded analysis: %s", exc)
            return degraded_analysis(metrics, str(exc), exc.last_text)
        except OperationTimeoutError as exc:
            logger.warning("Channel analysis timed out, returning degraded analysis: %s", exc)
            return degraded_analysis(metrics, str(exc))

        summary = _text(raw.summary) or _text(raw.trends)
        if not summary:
            logger.warning("Model returned an empty analysis, returning degraded analysis")
            return degraded_analysis(metrics, "The model returned an empty analysis")

        logger.info("Generated channel analysis")
        return ChannelAnalysis(
            summary=summary,
            trends=_text(raw.trends),
            content_strategy=_text(raw.content_strategy),
            posting_optimization=_text(raw.posting_optimization),
            next_video_ideas=raw.next_video_ideas or [],
            improvements=raw.improvements or [],
        )
