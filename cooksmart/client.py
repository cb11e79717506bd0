"""Consumes the recipe stream over HTTP, the way the browser does."""

import argparse
import asyncio
import contextlib
import logging
from typing import AsyncIterator

import httpx
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from cooksmart.events import StreamEvent, decode_sse
from cooksmart.exceptions import CookSmartError, StreamInterrupted
from cooksmart.extractor import collect_recipe
from cooksmart.models import GeneratedMeal, GenerationRequest


logger = logging.getLogger(__name__)


RELAY_URL = "http://localhost:3001"
TIMEOUT = 60 * 2


class RecipeStreamClient:
    def __init__(
        self,
        *,
        base_url: str = RELAY_URL,
        timeout: float = TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = (
            httpx.AsyncClient(base_url=base_url, timeout=timeout)
            if http_client is None
            else http_client
        )

    async def events(self, request: GenerationRequest) -> AsyncIterator[StreamEvent]:
        """Stream events for one generation.

        The connection is released as soon as the caller stops iterating.
        Transport failures and malformed frames are raised as
        ``StreamInterrupted``.
        """
        try:
            async with self._client.stream(
                "GET",
                "/recipeStream",
                params=request.to_query_params(),
                headers={"Accept": "text/event-stream"},
            ) as resp:
                if resp.status_code != 200:
                    await resp.aread()
                    raise StreamInterrupted(
                        f"Relay answered {resp.status_code}: {resp.text}"
                    )
                async for event in decode_sse(resp.aiter_lines()):
                    yield event
        except httpx.HTTPError as e:
            raise StreamInterrupted(f"Connection to relay failed: {e!r}") from e
        except ValueError as e:
            # Covers JSONDecodeError too.
            raise StreamInterrupted(f"Malformed stream event: {e}") from e

    async def generate(self, request: GenerationRequest) -> GeneratedMeal:
        async with contextlib.aclosing(self.events(request)) as events:
            recipe = await collect_recipe(events)
        return GeneratedMeal.from_request(recipe, request)

    async def get_preferences(self) -> GenerationRequest:
        try:
            resp = await self._client.get("/preferences")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Could not load preferences, using defaults: %r", e)
            return GenerationRequest()
        return GenerationRequest.model_validate(resp.json())

    async def save_preferences(self, preferences: GenerationRequest) -> None:
        resp = await self._client.put("/preferences", json=preferences.to_dict())
        resp.raise_for_status()

    async def close(self) -> None:
        await self._client.aclose()


def print_meal(meal: GeneratedMeal, console: Console) -> None:
    console.print(f"[bold]{meal.title or 'Untitled meal'}[/bold]")
    console.print(f"Prep time: {meal.prep_time} mins, {meal.calories} calories/serving")
    console.print()
    console.print("[bold]Ingredients:[/bold]")
    for ingredient in meal.ingredients:
        console.print(f"  • {ingredient}")
    console.print()
    console.print("[bold]Instructions:[/bold]")
    for i, instruction in enumerate(meal.instructions, start=1):
        console.print(f"  {i}. {instruction}")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a meal from the relay.")
    parser.add_argument("--url", default=RELAY_URL)
    parser.add_argument("--meal-type", dest="mealType")
    parser.add_argument("--cuisine")
    parser.add_argument("--diet", dest="dietConcerns", help="Comma separated tags.")
    parser.add_argument("--time", dest="cookingTime", type=int)
    parser.add_argument("--servings", type=int)
    parser.add_argument("--calories", dest="targetCalories", type=int)
    parser.add_argument(
        "--no-save",
        action="store_true",
        help="Do not store these preferences on the relay before generating.",
    )
    return parser.parse_args(argv)


def request_from_args(
    args: argparse.Namespace, defaults: GenerationRequest
) -> GenerationRequest:
    overrides = {
        k: v
        for k, v in vars(args).items()
        if k not in ("url", "no_save") and v is not None
    }
    return GenerationRequest.model_validate({**defaults.to_dict(), **overrides})


async def generate_meal(
    client: RecipeStreamClient, args: argparse.Namespace
) -> GeneratedMeal:
    """Last used preferences plus overrides, stored and then generated."""
    request = request_from_args(args, await client.get_preferences())
    if not args.no_save:
        await client.save_preferences(request)
    return await client.generate(request)


async def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.WARNING, format="%(message)s", handlers=[RichHandler()]
    )
    console = Console()
    args = parse_args(argv)
    client = RecipeStreamClient(base_url=args.url)
    try:
        with console.status("Generating..."):
            meal = await generate_meal(client, args)
    except (CookSmartError, httpx.HTTPError, ValidationError) as e:
        console.print(f"[red]Could not generate a meal.[/red] {e}")
        return 1
    finally:
        await client.close()

    print_meal(meal, console)
    return 0


def run() -> None:
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    run()
