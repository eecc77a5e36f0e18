import logging
from abc import ABC, abstractmethod
from typing import Any

from channel_insights.agents.orchestrator import GenerationOrchestrator
from channel_insights.config import COMMENT_PROMPT_LIMIT
from channel_insights.errors import ClassificationError
from channel_insights.models.comments import (
    Category,
    ClassificationResult,
    ClassifiedComment,
    CommentStatistics,
    CommentSummary,
)
from channel_insights.models.content import Comment

logger = logging.getLogger(__name__)

CONSTRUCTIVE_KEYWORDS = [
    "素晴らしい", "すごい", "感動", "勉強になる", "参考になる", "ありがとう",
    "助かる", "分かりやすい", "面白い", "良い", "いい", "最高", "神", "ナイス",
    "gj", "good", "great", "awesome", "amazing", "helpful", "useful", "thanks",
    "thank you", "love", "learned", "excellent", "clear explanation",
]

IMPROVEMENT_KEYWORDS = [
    "改善", "もっと", "できれば", "希望", "要望", "提案", "次回", "今度",
    "もう少し", "追加", "詳しく", "やってほしい", "お願い", "リクエスト",
    "音量", "画質", "編集", "bgm", "もしよろしければ", "もしよければ",
    "please", "could you", "would be nice", "suggest", "request", "next time",
    "more about", "improve", "volume", "audio", "too fast", "too long",
]

CONSTRUCTIVE_MIN_LENGTH = 20
IMPROVEMENT_MIN_LENGTH = 15
LENGTH_BONUS_RANGE = (50, 500)
LENGTH_BONUS = 2
KEYWORD_BONUS = 3
CATEGORY_LIMIT = 10

PREFIX_MATCH_LENGTH = 20

GENERATIVE_SHAPE = {
    "topComments": [{"text": "comment text", "likeCount": 0, "reason": "why it was chosen"}],
    "constructiveComments": [{"text": "comment text", "likeCount": 0, "reason": "why it was chosen"}],
    "improvementComments": [{"text": "comment text", "likeCount": 0, "reason": "why it was chosen"}],
    "summary": {
        "overallSentiment": "positive|negative|neutral",
        "keyThemes": ["theme"],
        "audienceInsights": "what the comments reveal about the audience",
    },
}


def _matched_keywords(text: str, keywords: list[str]) -> int:
    lowered = text.lower()
    return sum(1 for keyword in keywords if keyword in lowered)


def relevance_score(comment: Comment) -> int:
    score = comment.like_count
    low, high = LENGTH_BONUS_RANGE
    if low < len(comment.text) < high:
        score += LENGTH_BONUS
    score += KEYWORD_BONUS * _matched_keywords(comment.text, CONSTRUCTIVE_KEYWORDS)
    return score


def keyword_category(comment: Comment) -> Category:
    """Sentiment category of one comment under the keyword rules.

    Never returns "popular": popularity is decided by like count across the
    whole batch, not per comment.
    """
    length = len(comment.text)
    if length > CONSTRUCTIVE_MIN_LENGTH and _matched_keywords(comment.text, CONSTRUCTIVE_KEYWORDS):
        return "constructive"
    if length > IMPROVEMENT_MIN_LENGTH and _matched_keywords(comment.text, IMPROVEMENT_KEYWORDS):
        return "improvement"
    return "neutral"


def comment_statistics(comments: list[Comment]) -> CommentStatistics:
    if not comments:
        return CommentStatistics()

    likes = [c.like_count for c in comments]
    total = sum(likes)
    return CommentStatistics(
        total_comments=len(comments),
        average_likes=round(total / len(comments), 1),
        max_likes=max(likes),
        total_likes=total,
    )


def top_by_likes(comments: list[Comment], limit: int) -> list[Comment]:
    return sorted(comments, key=lambda c: c.like_count, reverse=True)[:limit]


class ClassificationStrategy(ABC):
    name: str

    @abstractmethod
    async def classify(self, comments: list[Comment]) -> ClassificationResult:
        pass


class KeywordStrategy(ClassificationStrategy):
    name = "keyword"

    def __init__(self, limit: int = CATEGORY_LIMIT):
        self.limit = limit

    def classify_sync(self, comments: list[Comment]) -> ClassificationResult:
        constructive: list[ClassifiedComment] = []
        improvement: list[ClassifiedComment] = []
        neutral_count = 0

        for comment in comments:
            score = relevance_score(comment)
            category = keyword_category(comment)
            if category == "constructive":
                constructive.append(ClassifiedComment.from_comment(comment, category, score))
            elif category == "improvement":
                improvement.append(ClassifiedComment.from_comment(comment, category, score))
            else:
                neutral_count += 1

        popular = [
            ClassifiedComment.from_comment(c, "popular", relevance_score(c))
            for c in top_by_likes(comments, self.limit)
        ]
        constructive.sort(key=lambda c: c.score, reverse=True)
        improvement.sort(key=lambda c: c.like_count, reverse=True)

        return ClassificationResult(
            strategy="keyword",
            popular=popular,
            constructive=constructive[:self.limit],
            improvement=improvement[:self.limit],
            neutral_count=neutral_count,
            statistics=comment_statistics(comments),
        )

    async def classify(self, comments: list[Comment]) -> ClassificationResult:
        return self.classify_sync(comments)


class GenerativeStrategy(ClassificationStrategy):
    name = "generative"

    def __init__(
        self,
        orchestrator: GenerationOrchestrator,
        prompt_limit: int = COMMENT_PROMPT_LIMIT,
        limit: int = CATEGORY_LIMIT,
    ):
        self.orchestrator = orchestrator
        self.prompt_limit = prompt_limit
        self.limit = limit

    def build_prompt(self, comments: list[Comment]) -> str:
        titles = sorted({c.item_title for c in comments if c.item_title})
        subject = f"the video(s) {', '.join(titles[:3])}" if titles else "a channel's videos"
        lines = "\n".join(
            f"- {c.text} (likes: {c.like_count})" for c in top_by_likes(comments, self.prompt_limit)
        )
        return f"""Analyze the audience comments on {subject} and sort them into three categories.

## COMMENTS:
{lines}

## CATEGORIES:
1. Popular: comments with many likes that many viewers agree with
2. Constructive: specific praise, thanks or learning that shows positive value
3. Improvement: constructive criticism, suggestions or requests useful for future videos

Choose up to {self.limit} representative comments per category, copying the comment text
verbatim, and summarize the overall sentiment, key themes and audience insights."""

    def _match(self, entry: dict, originals: list[Comment]) -> Comment | None:
        text = str(entry.get("text") or "")
        if not text:
            return None
        prefix = text[:PREFIX_MATCH_LENGTH]
        for original in originals:
            if not original.text:
                continue
            if prefix in original.text or original.text[:PREFIX_MATCH_LENGTH] in text:
                return original
        return None

    def _map_category(
        self,
        entries: Any,
        originals: list[Comment],
        category: Category,
        taken: set[str],
    ) -> list[ClassifiedComment]:
        """Resolve model entries to comments, skipping any whose id is in ``taken``.

        ``taken`` is updated in place, so sharing one set between categories
        keeps them disjoint with the first category winning.
        """
        if not isinstance(entries, list):
            return []

        mapped = []
        for position, entry in enumerate(entries):
            if len(mapped) >= self.limit:
                break
            if not isinstance(entry, dict):
                continue
            reason = entry.get("reason")
            reason = str(reason) if reason is not None else None
            original = self._match(entry, originals)
            if original is not None:
                key = original.id
            else:
                # the model paraphrased or invented the text; keep it unlinked
                like_count = entry.get("likeCount")
                original = Comment(
                    id=f"generated-{category}-{position}",
                    text=str(entry.get("text") or ""),
                    like_count=like_count if isinstance(like_count, int) and like_count >= 0 else 0,
                )
                if not original.text:
                    continue
                key = f"text:{original.text}"
            if key in taken:
                logger.debug("Skipping repeated %s entry for %s", category, key)
                continue
            taken.add(key)
            mapped.append(ClassifiedComment.from_comment(
                original, category, relevance_score(original), reason
            ))
        return mapped

    async def classify(self, comments: list[Comment]) -> ClassificationResult:
        if not comments:
            return ClassificationResult(strategy="generative")

        try:
            data = await self.orchestrator.generate(self.build_prompt(comments), GENERATIVE_SHAPE)
        except Exception as exc:
            raise ClassificationError(f"Generative comment analysis failed: {exc}") from exc

        if not isinstance(data, dict):
            raise ClassificationError("Generative comment analysis returned a non-object response")

        originals = top_by_likes(comments, self.prompt_limit)
        # popular may overlap the sentiment categories, which stay disjoint
        popular = self._map_category(data.get("topComments"), originals, "popular", set())
        sentiment_taken: set[str] = set()
        constructive = self._map_category(
            data.get("constructiveComments"), originals, "constructive", sentiment_taken
        )
        improvement = self._map_category(
            data.get("improvementComments"), originals, "improvement", sentiment_taken
        )

        raw_summary = data.get("summary") if isinstance(data.get("summary"), dict) else {}
        themes = raw_summary.get("keyThemes")
        summary = CommentSummary(
            overall_sentiment=str(raw_summary.get("overallSentiment") or "neutral"),
            key_themes=[str(t) for t in themes] if isinstance(themes, list) else [],
            audience_insights=str(raw_summary.get("audienceInsights") or ""),
        )

        categorized = {c.id for c in constructive + improvement}
        return ClassificationResult(
            strategy="generative",
            popular=popular,
            constructive=constructive,
            improvement=improvement,
            neutral_count=sum(1 for c in comments if c.id not in categorized),
            statistics=comment_statistics(comments),
            summary=summary,
        )


async def classify(
    comments: list[Comment],
    strategy: ClassificationStrategy,
    fallback: bool = True,
) -> ClassificationResult:
    """Classify comments, degrading to keyword rules if a generative run fails."""
    logger.info("Classifying %d comments with %s strategy", len(comments), strategy.name)
    try:
        return await strategy.classify(comments)
    except ClassificationError as exc:
        if not fallback or isinstance(strategy, KeywordStrategy):
            raise
        reason = str(exc)
        logger.warning("%s classification failed, falling back to keywords: %s", strategy.name, reason)

    result = KeywordStrategy().classify_sync(comments)
    return result.model_copy(update={
        "strategy": "keyword-fallback",
        "fallback_reason": reason,
    })
