import logging
from dataclasses import dataclass, field

from google import genai

from channel_insights.services.base import GenerativeBackend

logger = logging.getLogger(__name__)


class GeminiBackend(GenerativeBackend):
    def __init__(self, api_key: str, system_instruction: str = ""):
        self.api_key = api_key
        self.system_instruction = system_instruction
        self._client: genai.Client | None = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise ValueError("GOOGLE_API_KEY is not set. Add it to your .env file.")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def complete(self, prompt: str, model_name: str) -> str:
        client = self._get_client()

        logger.info("Calling Gemini (%s)", model_name)

        config = None
        if self.system_instruction:
            config = genai.types.GenerateContentConfig(
                system_instruction=self.system_instruction,
            )

        response = await client.aio.models.generate_content(
            model=model_name,
            contents=prompt,
            config=config,
        )

        if not response.text:
            raise ValueError(f"Empty response from {model_name}")
        return response.text


@dataclass(frozen=True)
class ModelVariant:
    """One entry of a fallback chain: a named model on a backend."""

    name: str
    backend: GenerativeBackend
    capabilities: frozenset[str] = field(default_factory=lambda: frozenset({"text"}))

    async def complete(self, prompt: str) -> str:
        return await self.backend.complete(prompt, self.name)


def model_chain(
    backend: GenerativeBackend,
    names: list[str],
    capabilities: frozenset[str] = frozenset({"text"}),
) -> list[ModelVariant]:
    return [ModelVariant(name, backend, capabilities) for name in names]
