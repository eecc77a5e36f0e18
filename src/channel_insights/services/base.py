"""Abstract interfaces for the external collaborators of the pipeline."""

from abc import ABC, abstractmethod

from channel_insights.models.content import ChannelInfo, Comment, ContentItem, ItemStatistics


class ContentProvider(ABC):
    """Source of published items, their statistics and audience comments."""

    @abstractmethod
    async def list_items(self, source_id: str, max_items: int) -> list[ContentItem]:
        """
        List the most recent items published by a source.

        Args:
            source_id: Channel id, handle or channel URL.
            max_items: Upper bound on the number of items returned.

        Returns:
            Items newest first. Statistics may be incomplete until merged with
            :meth:`get_statistics`.
        """

    @abstractmethod
    async def get_statistics(self, item_ids: list[str]) -> list[ItemStatistics]:
        """
        Fetch view/like/comment counts for the given items.

        Items that cannot be fetched are omitted from the result.
        """

    @abstractmethod
    async def list_comments(self, item_id: str, max_comments: int) -> list[Comment]:
        """List top-level comments of one item, most relevant first."""

    async def get_channel(self, source_id: str) -> ChannelInfo | None:
        """
        Describe the source itself (name, subscriber count).

        Providers without channel metadata return None.
        """
        return None


class GenerativeBackend(ABC):
    """Text-completion service hosting one or more named models."""

    @abstractmethod
    async def complete(self, prompt: str, model_name: str) -> str:
        """
        Complete a prompt with the named model.

        Raises:
            Exception: Any backend failure, including an unknown model name.
        """
