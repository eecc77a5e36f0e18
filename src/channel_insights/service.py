"""Transport-agnostic entry points.

Every operation returns a JSON-serialisable envelope::

    {"success": True, "data": {...}}
    {"success": False, "error": "<summary>", "kind": "<error kind>", "details": {...}}

and never raises.
"""

import logging

from channel_insights import config
from channel_insights.agents.analyst import ChannelAnalyst
from channel_insights.agents.classifier import (
    ClassificationStrategy,
    GenerativeStrategy,
    KeywordStrategy,
    classify,
)
from channel_insights.agents.extractor import (
    extract_comments,
    extract_item_comments,
    fetch_channel,
    list_source_items,
    run_extractor,
)
from channel_insights.agents.ideas import IdeaPipeline
from channel_insights.agents.metrics import aggregate
from channel_insights.agents.orchestrator import GenerationOrchestrator
from channel_insights.errors import AnalyzerError, InvalidRequestError
from channel_insights.graph.workflow import compile_app
from channel_insights.models.content import Comment, ContentItem
from channel_insights.models.idea import IdeaReport
from channel_insights.services.base import ContentProvider
from channel_insights.services.llm import GeminiBackend, model_chain
from channel_insights.services.youtube import YtDlpContentProvider

logger = logging.getLogger(__name__)

ERROR_SUMMARIES = {
    "empty_input": "No videos were found for this channel.",
    "invalid_request": "The request is missing or has invalid parameters.",
    "invalid_source": "Invalid YouTube channel reference. Use a channel id, @handle or channel URL.",
    "provider": "Could not retrieve channel data from YouTube. Please try again later.",
    "timeout": "The request timed out. Please try again.",
    "classification": "Comment analysis failed.",
    "extraction": "The AI response could not be parsed.",
    "generation_exhausted": "Every AI model failed to generate a response.",
    "internal": "An unexpected error occurred.",
}


def success_response(data) -> dict:
    return {"success": True, "data": data}


def error_response(exc: Exception) -> dict:
    if isinstance(exc, AnalyzerError):
        return {
            "success": False,
            "error": ERROR_SUMMARIES.get(exc.kind, exc.message),
            "kind": exc.kind,
            "details": exc.to_dict(),
        }

    logger.error("Unexpected %s: %s", type(exc).__name__, exc, exc_info=exc)
    return {
        "success": False,
        "error": ERROR_SUMMARIES["internal"],
        "kind": "internal",
        "details": {"message": str(exc)},
    }


class ChannelAnalyzer:
    def __init__(
        self,
        provider: ContentProvider,
        orchestrator: GenerationOrchestrator,
        provider_timeout: float | None = config.PROVIDER_TIMEOUT,
        max_items: int = config.DEFAULT_MAX_ITEMS,
        max_comments: int = config.DEFAULT_MAX_COMMENTS,
        comments_per_item: int = config.COMMENTS_PER_ITEM,
        idea_count: int = config.IDEA_COUNT,
    ):
        self.provider = provider
        self.orchestrator = orchestrator
        self.provider_timeout = provider_timeout
        self.max_items = max_items
        self.max_comments = max_comments
        self.comments_per_item = comments_per_item

        self.strategies: dict[str, ClassificationStrategy] = {
            "keyword": KeywordStrategy(),
            "generative": GenerativeStrategy(orchestrator),
        }
        self.pipeline = IdeaPipeline(orchestrator, self.strategies["generative"], idea_count)
        self.analyst = ChannelAnalyst(orchestrator)
        self.app = compile_app(
            provider,
            self.pipeline,
            self.strategies["generative"],
            provider_timeout,
            comments_per_item,
        )

    @staticmethod
    def _limit(value: int | None, default: int, name: str) -> int:
        if value is None:
            return default
        if value < 1:
            raise InvalidRequestError(f"{name} must be at least 1", {name: value})
        return value

    async def _analysis_comments(self, items: list[ContentItem]) -> list[Comment]:
        try:
            return await extract_comments(
                self.provider,
                items,
                config.ANALYSIS_COMMENT_LIMIT,
                config.ANALYSIS_COMMENTS_PER_ITEM,
                self.provider_timeout,
            )
        except AnalyzerError as exc:
            logger.warning("Analyzing without comments: %s", exc)
            return []

    async def analyze_metrics(
        self,
        source_id: str,
        max_items: int | None = None,
        include_analysis: bool = False,
    ) -> dict:
        try:
            limit = self._limit(max_items, self.max_items, "max_items")
            items = await run_extractor(self.provider, source_id, limit, self.provider_timeout)
            channel = await fetch_channel(self.provider, source_id, self.provider_timeout)
            metrics = aggregate(items, channel=channel)
            if include_analysis:
                comments = await self._analysis_comments(items)
                analysis = await self.analyst.analyze(metrics, comments)
                metrics = metrics.model_copy(update={"ai_analysis": analysis})
        except Exception as exc:
            return error_response(exc)
        return success_response(metrics.model_dump(mode="json"))

    async def analyze_comments(
        self,
        source_id: str | None = None,
        item_id: str | None = None,
        max_comments: int | None = None,
        strategy: str = "generative",
    ) -> dict:
        try:
            limit = self._limit(max_comments, self.max_comments, "max_comments")
            if strategy not in self.strategies:
                raise InvalidRequestError(
                    f"Unknown strategy {strategy!r}", {"allowed": sorted(self.strategies)}
                )
            if item_id:
                comments = await extract_item_comments(
                    self.provider, item_id, limit, self.provider_timeout
                )
            elif source_id:
                items = await list_source_items(
                    self.provider, source_id, self.max_items, self.provider_timeout
                )
                comments = await extract_comments(
                    self.provider, items, limit, self.comments_per_item, self.provider_timeout
                )
            else:
                raise InvalidRequestError("Either source_id or item_id is required")

            result = await classify(comments, self.strategies[strategy], fallback=True)
        except Exception as exc:
            return error_response(exc)
        return success_response(result.model_dump(mode="json"))

    async def generate_ideas(self, source_id: str, custom_prompt: str | None = None) -> dict:
        try:
            state = await self.app.ainvoke({
                "source_id": source_id,
                "max_items": self.max_items,
                "max_comments": self.max_comments,
                "custom_prompt": custom_prompt,
                "failures": [],
            })
        except Exception as exc:
            return error_response(exc)

        ideas = state.get("ideas", [])
        comments = state.get("comments")
        report = IdeaReport(
            ideas=ideas,
            degraded=any(idea.degraded for idea in ideas),
            comment_strategy=comments.strategy if comments is not None else None,
            failures=state.get("failures", []),
        )
        if report.degraded:
            logger.warning("Returning degraded ideas for %s", source_id)
        return success_response(report.model_dump(mode="json"))


def build_analyzer() -> ChannelAnalyzer:
    """Wire the default collaborators from environment configuration."""
    backend = GeminiBackend(config.GOOGLE_API_KEY)
    orchestrator = GenerationOrchestrator(
        model_chain(backend, config.GEMINI_MODELS),
        timeout=config.GENERATION_TIMEOUT,
    )
    return ChannelAnalyzer(YtDlpContentProvider(), orchestrator)
