"""Relays a streamed chat completion as CookSmart stream events."""

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from cooksmart.events import StreamEvent
from cooksmart.exceptions import CookSmartError, UpstreamError, UpstreamTimeout
from cooksmart.llm_service import CompletionDelta, CompletionProvider
from cooksmart.models import GenerationRequest
from cooksmart.prompts import MealPrompt


logger = logging.getLogger(__name__)


DEFAULT_MODEL = "gpt-5-mini"
IDLE_TIMEOUT = 60.0


class StreamRelay:
    """Adapts provider deltas into start/chunk/close events.

    Holds no per-request state, so one relay serves every connection.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        *,
        model: str = DEFAULT_MODEL,
        idle_timeout: float = IDLE_TIMEOUT,
        emit_errors: bool = True,
    ) -> None:
        self.provider = provider
        self.model = model
        self.idle_timeout = idle_timeout
        self.emit_errors = emit_errors

    async def _next_delta(self, deltas: AsyncIterator[CompletionDelta]) -> CompletionDelta:
        try:
            async with asyncio.timeout(self.idle_timeout):
                return await anext(deltas)
        except TimeoutError as e:
            raise UpstreamTimeout(
                f"No token received for {self.idle_timeout} seconds"
            ) from e

    async def events(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]:
        messages = MealPrompt(request).to_messages()
        deltas = aiter(self.provider.stream(model=self.model, messages=messages))
        logger.info(
            "Relaying %s recipe (%s) from %s",
            request.meal_type.value,
            request.cuisine or "any cuisine",
            self.model,
        )

        error: CookSmartError | None = None
        try:
            while True:
                try:
                    delta = await self._next_delta(deltas)
                except StopAsyncIteration:
                    logger.warning("Upstream stream ended without a finish reason.")
                    error = UpstreamError(
                        "Completion ended without a finish reason"
                    )
                    break
                except CookSmartError as e:
                    logger.error("Upstream failure: %s", e)
                    error = e
                    break
                except Exception as e:
                    logger.exception("Upstream failure.")
                    error = UpstreamError(repr(e))
                    break

                if delta.role:
                    yield StreamEvent.start()
                if delta.content:
                    yield StreamEvent.from_chunk(delta.content)

                if delta.finish_reason is not None:
                    if delta.finish_reason != "stop":
                        logger.warning(
                            "Upstream finished early (%s), closing anyway.",
                            delta.finish_reason,
                        )
                    break
        finally:
            aclose = getattr(deltas, "aclose", None)
            if aclose is not None:
                await aclose()

        if error is None:
            yield StreamEvent.close()
        elif self.emit_errors:
            yield StreamEvent.error(error.error_code)

    async def sse(self, request: GenerationRequest) -> AsyncIterator[str]:
        async with contextlib.aclosing(self.events(request)) as events:
            async for event in events:
                yield event.to_sse()
