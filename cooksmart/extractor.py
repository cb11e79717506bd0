"""Pulls a recipe out of a streamed transcript.

The model decides the layout, so this is a line heuristic and nothing more.
Text it does not understand ends up as empty lists, never as an exception.
"""

import logging
import re
from typing import AsyncIterable

from cooksmart.events import Action, StreamEvent
from cooksmart.exceptions import GenerationFailed, StreamInterrupted
from cooksmart.models import ParsedRecipe


logger = logging.getLogger(__name__)


BULLET = re.compile(r"^[-*]\s*")
NUMBER = re.compile(r"^\d+[).]?\s*")


class RecipeDraft:
    """Chunks received so far, in arrival order."""

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self.frozen = False

    def append(self, chunk: str) -> None:
        if self.frozen:
            raise RuntimeError("Draft is frozen, the stream already closed.")
        self._chunks.append(chunk)

    def freeze(self) -> str:
        self.frozen = True
        return self.full_text

    @property
    def full_text(self) -> str:
        return "".join(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)


def parse_recipe(transcript: str) -> ParsedRecipe:
    lines = [line.strip() for line in transcript.split("\n")]
    lines = [line for line in lines if line]
    if not lines:
        logger.warning("Empty transcript, nothing to parse.")
        return ParsedRecipe(title="", ingredients=[], instructions=[])

    title, *rest = lines
    ingredients: list[str] = []
    instructions: list[str] = []
    in_ingredients = in_instructions = False

    for line in rest:
        lower = line.lower()
        if "ingredients" in lower:
            in_ingredients, in_instructions = True, False
        elif "instructions" in lower:
            in_ingredients, in_instructions = False, True
        elif in_ingredients:
            ingredients.append(BULLET.sub("", line, count=1))
        elif in_instructions:
            instructions.append(NUMBER.sub("", line, count=1))

    recipe = ParsedRecipe(
        title=title, ingredients=ingredients, instructions=instructions
    )
    if recipe.is_empty:
        logger.warning(
            "No ingredients or instructions found in %r, the format may have changed.",
            title,
        )
    return recipe


async def collect_recipe(events: AsyncIterable[StreamEvent]) -> ParsedRecipe:
    """Fold a stream into a recipe, parsing once on close."""
    draft = RecipeDraft()
    async for event in events:
        match event.action:
            case Action.start:
                continue
            case Action.chunk:
                draft.append(event.chunk or "")
            case Action.close:
                logger.debug("Stream closed after %d chunks.", len(draft))
                return parse_recipe(draft.freeze())
            case Action.error:
                raise GenerationFailed(event.message or "Recipe generation failed")
    raise StreamInterrupted(f"Stream ended after {len(draft)} chunks without close")
