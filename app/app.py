import contextlib
import logging
from typing import AsyncIterator

from databases import Database
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, StreamingResponse
from starlette.routing import Route

from app import config
from cooksmart.llm_service import CompletionProvider, OpenAIProvider
from cooksmart.models import GenerationRequest
from cooksmart.relay import StreamRelay
from cooksmart.repository import PreferencesRepository


logger = logging.getLogger(__name__)


SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def validation_error(e: ValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in e.errors()
    ]
    return JSONResponse({"error": "Invalid preferences.", "details": errors}, 400)


async def recipe_stream(request: Request) -> StreamingResponse | JSONResponse:
    try:
        generation = GenerationRequest.from_query_params(request.query_params)
    except ValidationError as e:
        return validation_error(e)

    relay: StreamRelay = request.app.state.relay

    async def event_stream() -> AsyncIterator[str]:
        async with contextlib.aclosing(relay.sse(generation)) as events:
            async for event in events:
                if await request.is_disconnected():
                    logger.info("Client went away, dropping the upstream stream.")
                    return
                yield event

    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=SSE_HEADERS
    )


async def preferences(request: Request) -> JSONResponse:
    repo: PreferencesRepository = request.app.state.repo
    match request.method.lower():
        case "get":
            prefs = await repo.get_meal_preferences()
            return JSONResponse(prefs.to_dict())
        case "put":
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse({"error": "Body must be JSON."}, 400)
            try:
                prefs = GenerationRequest.model_validate(body)
            except ValidationError as e:
                return validation_error(e)
            await repo.save_meal_preferences(prefs)
            return JSONResponse(prefs.to_dict())
        case _:
            raise ValueError("Unsupported method.")


def create_app(
    cfg: config.Config | None = None,
    *,
    provider: CompletionProvider | None = None,
    repo: PreferencesRepository | None = None,
) -> Starlette:
    cfg = config.Config() if cfg is None else cfg

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        config.configure_logging(cfg)
        openai_provider: OpenAIProvider | None = None
        if app.state.relay is None:
            if cfg.openai_api_key is None:
                raise ValueError("OPENAI_API_KEY is not set.")
            openai_provider = OpenAIProvider(
                api_key=cfg.openai_api_key.get_secret_value(),
                base_url=cfg.openai_base_url,
            )
            app.state.relay = build_relay(openai_provider, cfg)
        await app.state.repo.connect()
        logger.info("CookSmart relay ready, model %s.", cfg.core_model)
        try:
            yield
        finally:
            await app.state.repo.disconnect()
            # Only the provider built here is ours to close.
            if openai_provider is not None:
                await openai_provider.close()

    app = Starlette(
        debug=True if cfg.env == config.Env.local else False,
        routes=[
            Route("/recipeStream", recipe_stream),
            Route("/preferences", preferences, methods=["GET", "PUT"]),
        ],
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=cfg.cors_origins,
                allow_methods=["GET", "PUT"],
                allow_headers=["*"],
            )
        ],
        lifespan=lifespan,
    )

    app.state.config = cfg
    app.state.relay = None if provider is None else build_relay(provider, cfg)
    app.state.repo = PreferencesRepository(Database(cfg.db_url)) if repo is None else repo
    return app


def build_relay(provider: CompletionProvider, cfg: config.Config) -> StreamRelay:
    return StreamRelay(
        provider,
        model=cfg.core_model,
        idle_timeout=cfg.stream_idle_timeout,
        emit_errors=cfg.emit_error_events,
    )


app = create_app()
