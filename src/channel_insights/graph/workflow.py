import logging

from langgraph.graph import END, StateGraph

from channel_insights.agents.classifier import ClassificationStrategy, classify
from channel_insights.agents.extractor import (
    attach_statistics,
    extract_comments,
    fetch_channel,
    list_source_items,
)
from channel_insights.agents.ideas import IdeaPipeline
from channel_insights.agents.metrics import aggregate
from channel_insights.config import COMMENTS_PER_ITEM, PROVIDER_TIMEOUT
from channel_insights.errors import AnalyzerError
from channel_insights.graph.state import PipelineState
from channel_insights.services.base import ContentProvider

logger = logging.getLogger(__name__)


def build_workflow(
    provider: ContentProvider,
    pipeline: IdeaPipeline,
    strategy: ClassificationStrategy,
    provider_timeout: float | None = PROVIDER_TIMEOUT,
    comments_per_item: int = COMMENTS_PER_ITEM,
) -> StateGraph:
    """Idea workflow: list items, then metrics and comments side by side, then ideas.

    Failures while listing items or computing metrics propagate; a failure in
    the comments branch is recorded in ``failures`` and ideas are generated
    from metrics alone.
    """

    # --- Node functions ---

    async def fetch_items(state: PipelineState) -> dict:
        logger.info("Step 1/3: Listing items for %s", state["source_id"])
        items = await list_source_items(
            provider, state["source_id"], state["max_items"], provider_timeout
        )
        return {"items": items}

    async def aggregate_metrics(state: PipelineState) -> dict:
        logger.info("Step 2/3: Aggregating metrics")
        items = await attach_statistics(provider, state["items"], provider_timeout)
        channel = await fetch_channel(provider, state["source_id"], provider_timeout)
        return {"metrics": aggregate(items, channel=channel)}

    async def classify_comments(state: PipelineState) -> dict:
        logger.info("Step 2/3: Classifying comments")
        try:
            comments = await extract_comments(
                provider,
                state["items"],
                state.get("max_comments", 0),
                comments_per_item,
                provider_timeout,
            )
            if not comments:
                logger.info("No comments available, continuing with metrics only")
                return {"comments": None}
            result = await classify(comments, strategy, fallback=True)
        except AnalyzerError as exc:
            logger.warning("Comment branch failed, continuing with metrics only: %s", exc)
            return {"comments": None, "failures": [f"comments: {exc.kind}: {exc}"]}
        return {"comments": result}

    async def generate_ideas(state: PipelineState) -> dict:
        logger.info("Step 3/3: Generating ideas")
        ideas = await pipeline.generate_ideas(
            state["metrics"], state.get("comments"), state.get("custom_prompt")
        )
        return {"ideas": ideas}

    workflow = StateGraph(PipelineState)

    workflow.add_node("fetch_items", fetch_items)
    workflow.add_node("aggregate_metrics", aggregate_metrics)
    workflow.add_node("classify_comments", classify_comments)
    workflow.add_node("generate_ideas", generate_ideas)

    workflow.set_entry_point("fetch_items")

    workflow.add_edge("fetch_items", "aggregate_metrics")
    workflow.add_edge("fetch_items", "classify_comments")
    workflow.add_edge(["aggregate_metrics", "classify_comments"], "generate_ideas")
    workflow.add_edge("generate_ideas", END)

    return workflow


def compile_app(
    provider: ContentProvider,
    pipeline: IdeaPipeline,
    strategy: ClassificationStrategy,
    provider_timeout: float | None = PROVIDER_TIMEOUT,
    comments_per_item: int = COMMENTS_PER_ITEM,
):
    workflow = build_workflow(provider, pipeline, strategy, provider_timeout, comments_per_item)
    return workflow.compile()
