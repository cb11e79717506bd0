"""Chat-completion streaming behind a small protocol.

The relay only needs three things from a provider: a role marker when the
assistant starts talking, content fragments, and a finish reason.
"""

import logging
from typing import Any, AsyncIterator, Protocol

import openai

from cooksmart.exceptions import UpstreamError


logger = logging.getLogger(__name__)


class CompletionDelta:
    def __init__(
        self,
        *,
        role: str | None = None,
        content: str | None = None,
        finish_reason: str | None = None,
    ) -> None:
        self.role = role
        self.content = content
        self.finish_reason = finish_reason

    def __repr__(self) -> str:
        return (
            f"<CompletionDelta(role={self.role!r}, content={self.content!r}, "
            f"finish_reason={self.finish_reason!r})>"
        )


class CompletionProvider(Protocol):
    def stream(
        self, *, model: str, messages: list[dict[str, str]]
    ) -> AsyncIterator[CompletionDelta]:
        ...


class OpenAIProvider:
    """Streams chat completions with the ``openai`` async client.

    The key is handed in explicitly. Closing the returned iterator closes the
    upstream HTTP response.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str | None = None,
        openai_client: openai.AsyncClient | None = None,
    ) -> None:
        self.openai_client = (
            openai.AsyncClient(api_key=api_key, base_url=base_url)
            if openai_client is None
            else openai_client
        )

    async def stream(
        self, *, model: str, messages: list[dict[str, str]]
    ) -> AsyncIterator[CompletionDelta]:
        try:
            completion = await self.openai_client.chat.completions.create(
                model=model,
                messages=messages,  # pyright: ignore[reportArgumentType]
                stream=True,
            )
        except openai.APIError as e:
            raise UpstreamError(f"Could not start completion: {e!r}") from e

        try:
            async for chunk in completion:
                delta = delta_from_chunk(chunk)
                if delta is not None:
                    yield delta
        except openai.APIError as e:
            raise UpstreamError(f"Completion stream failed: {e!r}") from e
        finally:
            logger.debug("Closing upstream completion stream.")
            await completion.close()

    async def close(self) -> None:
        await self.openai_client.close()


def delta_from_chunk(chunk: Any) -> CompletionDelta | None:
    if not chunk.choices:
        # Usage-only chunks carry no choices.
        return None
    choice = chunk.choices[0]
    delta = choice.delta
    return CompletionDelta(
        role=getattr(delta, "role", None) if delta else None,
        content=getattr(delta, "content", None) if delta else None,
        finish_reason=choice.finish_reason,
    )
