import logging

from channel_insights.agents.analyst import channel_line
from channel_insights.agents.classifier import ClassificationStrategy, classify
from channel_insights.agents.orchestrator import GenerationOrchestrator
from channel_insights.config import IDEA_COUNT, TOP_N
from channel_insights.errors import GenerationExhaustedError, OperationTimeoutError
from channel_insights.models.comments import ClassificationResult
from channel_insights.models.content import Comment
from channel_insights.models.idea import (
    DEFAULT_RECOMMENDED_LENGTH,
    DEFAULT_TARGET_AUDIENCE,
    DEFAULT_TITLE,
    Idea,
    IdeaBatchPayload,
    RawIdea,
)
from channel_insights.models.metrics import ChannelMetrics

logger = logging.getLogger(__name__)

COMMENTS_PER_CATEGORY = 5
COMMENT_PREVIEW_LENGTH = 100
MODEL_TEXT_PREVIEW_LENGTH = 300

IDEA_SHAPE = {
    "ideas": [
        {
            "title": "Catchy video title (under 70 characters)",
            "concept": "Main concept of the video in one or two sentences",
            "reasoning": "Why this idea fits the channel, citing the data above",
            "targetAudience": "Who the video is for",
            "structure": ["Intro (first 30 seconds)", "Main segment", "Wrap-up and call to action"],
            "successTips": ["Concrete tip for making the video perform"],
            "recommendedLength": "Recommended duration, e.g. 10-15 minutes",
            "tags": ["tag"],
        }
    ]
}


def _format_comments(comments: ClassificationResult) -> str:
    sections = []
    for label, entries in (
        ("Popular", comments.popular),
        ("Constructive", comments.constructive),
        ("Improvement requests", comments.improvement),
    ):
        if not entries:
            continue
        lines = [
            f'- "{c.text[:COMMENT_PREVIEW_LENGTH]}" ({c.like_count} likes)'
            for c in entries[:COMMENTS_PER_CATEGORY]
        ]
        sections.append(f"### {label}:\n" + "\n".join(lines))

    if comments.summary.key_themes:
        sections.append("### Key themes: " + ", ".join(comments.summary.key_themes))

    return "\n\n".join(sections)


def build_idea_prompt(
    metrics: ChannelMetrics,
    comments: ClassificationResult | None = None,
    custom_prompt: str | None = None,
    idea_count: int = IDEA_COUNT,
    top_n: int = TOP_N,
) -> str:
    averages = metrics.averages
    pattern = metrics.upload_pattern
    top_items = "\n".join(
        f'{i}. "{r.title}" - {r.views:,} views, {r.engagement_rate:.2f}% engagement'
        for i, r in enumerate(metrics.top_performers.by_views[:top_n], 1)
    )

    comments_section = ""
    if comments is not None:
        formatted = _format_comments(comments)
        if formatted:
            comments_section = f"\n## AUDIENCE COMMENTS:\n{formatted}\n"

    custom_section = ""
    if custom_prompt:
        custom_section = f"""
## CREATOR REQUEST:
{custom_prompt}

Shape every idea around this request while staying consistent with the channel data.
"""

    frequency = (
        f"- Average days between uploads: {metrics.upload_frequency_days}\n"
        if metrics.upload_frequency_days is not None else ""
    )

    return f"""You are a YouTube content strategist. Propose {idea_count} new video ideas for the
channel described below, grounded in its real performance data.
{channel_line(metrics)}

## CHANNEL PERFORMANCE ({metrics.total_items} videos analyzed):
- Average views: {averages.views:,}
- Average likes: {averages.likes:,}
- Average comments: {averages.comments:,}
- Average engagement rate: {averages.engagement_rate:.2f}%

## TOP VIDEOS BY VIEWS:
{top_items}

## UPLOAD PATTERN:
- Most frequent upload day: {pattern.most_popular_day_name}
- Most frequent upload hour (UTC): {pattern.most_popular_hour}:00
{frequency}{comments_section}{custom_section}
Generate exactly {idea_count} ideas. Be specific to this channel, never generic."""


def _text(value: str | None, default: str) -> str:
    if value is None or not value.strip():
        return default
    return value


def normalize_idea(raw: RawIdea) -> Idea:
    """Fill every missing field of a model-produced idea with its default."""
    return Idea(
        title=_text(raw.title, DEFAULT_TITLE),
        concept=_text(raw.concept, ""),
        reasoning=_text(raw.reasoning, ""),
        target_audience=_text(raw.target_audience, DEFAULT_TARGET_AUDIENCE),
        structure=raw.structure if raw.structure is not None else [],
        success_tips=raw.success_tips if raw.success_tips is not None else [],
        recommended_length=_text(raw.recommended_length, DEFAULT_RECOMMENDED_LENGTH),
        tags=raw.tags if raw.tags is not None else [],
    )


def degraded_ideas(
    metrics: ChannelMetrics,
    idea_count: int = IDEA_COUNT,
    model_text: str | None = None,
) -> list[Idea]:
    """Template ideas built from metrics alone, used when generation fails."""
    pattern = metrics.upload_pattern
    publish_tip = (
        f"Publish on {pattern.most_popular_day_name} around "
        f"{pattern.most_popular_hour}:00 UTC, when the channel usually uploads"
    )
    keywords = [k.word for k in metrics.title_keywords[:5]]
    top = metrics.top_performers.by_views[0] if metrics.top_performers.by_views else None

    ideas = []
    if model_text and model_text.strip():
        ideas.append(Idea(
            title="Draft idea from an unstructured model response",
            concept=model_text.strip()[:MODEL_TEXT_PREVIEW_LENGTH],
            reasoning="The model answered without the expected structure; review the draft manually.",
            target_audience=DEFAULT_TARGET_AUDIENCE,
            structure=[],
            success_tips=[publish_tip],
            recommended_length=DEFAULT_RECOMMENDED_LENGTH,
            tags=keywords,
            degraded=True,
        ))

    if top is not None:
        ideas.append(Idea(
            title=f"Follow-up: {top.title}"[:100],
            concept=f'Go deeper on the topic of "{top.title}", the channel\'s most viewed video.',
            reasoning=(
                f"It reached {top.views:,} views against a channel average of "
                f"{metrics.averages.views:,}."
            ),
            target_audience="Viewers of the original video",
            structure=["Recap the original video", "New angle or update", "Viewer questions", "Call to action"],
            success_tips=[publish_tip, "Link the original video in the first minute"],
            recommended_length=DEFAULT_RECOMMENDED_LENGTH,
            tags=keywords,
            degraded=True,
        ))

    ideas.append(Idea(
        title="Viewer Q&A special",
        concept="Answer the most common questions left in the comments.",
        reasoning=(
            f"Direct interaction lifts engagement; the channel averages "
            f"{metrics.averages.engagement_rate:.2f}% today."
        ),
        target_audience=DEFAULT_TARGET_AUDIENCE,
        structure=["Intro", "Top questions", "Behind the scenes", "Ask for next questions"],
        success_tips=[publish_tip, "Pin a comment collecting questions for the next video"],
        recommended_length="8-12 minutes",
        tags=["q&a"] + keywords,
        degraded=True,
    ))
    ideas.append(Idea(
        title="Complete beginner's guide",
        concept="Explain the channel's core topic from the basics for new viewers.",
        reasoning="Evergreen introductory content brings in search traffic from new viewers.",
        target_audience="New viewers",
        structure=["Why it matters", "Basics step by step", "Common mistakes", "Where to go next"],
        success_tips=[publish_tip, "Use chapters so viewers can jump to their level"],
        recommended_length="15-20 minutes",
        tags=["beginners", "guide"] + keywords,
        degraded=True,
    ))

    return ideas[:max(idea_count, 1)]


class IdeaPipeline:
    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        strategy: ClassificationStrategy | None = None,
        idea_count: int = IDEA_COUNT,
    ):
        self.orchestrator = orchestrator
        self.strategy = strategy
        self.idea_count = idea_count

    async def _classified(
        self, comments: list[Comment] | ClassificationResult | None
    ) -> ClassificationResult | None:
        if comments is None or isinstance(comments, ClassificationResult):
            return comments
        if not comments or self.strategy is None:
            return None
        return await classify(comments, self.strategy, fallback=True)

    async def generate_ideas(
        self,
        metrics: ChannelMetrics,
        comments: list[Comment] | ClassificationResult | None = None,
        custom_prompt: str | None = None,
    ) -> list[Idea]:
        """Generate normalized ideas, or degraded template ideas if every model fails."""
        classified = await self._classified(comments)
        prompt = build_idea_prompt(metrics, classified, custom_prompt, self.idea_count)

        try:
            payload = await self.orchestrator.generate_typed(prompt, IdeaBatchPayload, IDEA_SHAPE)
        except GenerationExhaustedError as exc:
            logger.warning("Idea generation exhausted, returning degraded ideas: %s", exc)
            return degraded_ideas(metrics, self.idea_count, exc.last_text)
        except OperationTimeoutError as exc:
            logger.warning("Idea generation timed out, returning degraded ideas: %s", exc)
            return degraded_ideas(metrics, self.idea_count)

        ideas = [normalize_idea(raw) for raw in payload.ideas]
        if not ideas:
            logger.warning("Model returned no ideas, returning degraded ideas")
            return degraded_ideas(metrics, self.idea_count)

        logger.info("Generated %d ideas", len(ideas))
        return ideas
