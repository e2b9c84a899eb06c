"""Routes of the ingestion control surface.

Every route is an async function returning an ``ApiResponse``; nothing raises
out of ``dispatch``. Failures map onto status codes as follows:

    401  missing/wrong shared secret, or the secret is not configured
    400  malformed query parameters or webhook body
    404  no usable feed rows for the season, unknown game, unknown route
    500  upstream fetch, configuration or store failure

Error bodies are always ``{"error": <message>}``.
"""

import hmac
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from pickem.config.settings import AppSettings, ConfigurationError
from pickem.feeds.base_feed import FeedClient, FeedError
from pickem.ingestion.adapters import build_canonical_csv
from pickem.ingestion.schedule import EmptyFeedError, run_schedule_ingestion
from pickem.ingestion.scores import (
    UnknownGameError,
    apply_score_webhook,
    run_score_ingestion,
)
from pickem.ingestion.tiebreaker import ensure_tiebreakers
from pickem.models.enums import FeedKind, ScoreSource
from pickem.storage.supabase_client import GameStore, StoreError, SupabaseStore

CRON_SECRET_HEADER = "x-cron-secret"
WEBHOOK_SECRET_HEADER = "x-webhook-secret"

Query = Mapping[str, List[str]]
StoreFactory = Callable[[AppSettings], Awaitable[GameStore]]
FeedFactory = Callable[[AppSettings], FeedClient]


class RequestError(Exception):
    """Malformed request parameters (400)."""

    pass


class UnauthorizedError(Exception):
    """Missing or wrong shared secret (401)."""

    pass


class RouteNotFoundError(Exception):
    pass


@dataclass
class ApiResponse:
    status: int
    body: Any
    content_type: str = "application/json"
    headers: Dict[str, str] = field(default_factory=dict)

    def encode(self) -> bytes:
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")


@dataclass
class RequestContext:
    """Everything a route needs; factories are swapped out in tests."""

    settings: AppSettings
    headers: Dict[str, str]
    query: Query
    body: bytes = b""
    store_factory: StoreFactory = SupabaseStore.connect
    feed_factory: FeedFactory = FeedClient


def error_response(status: int, message: str) -> ApiResponse:
    return ApiResponse(status=status, body={"error": message})


def check_secret(headers: Mapping[str, str], header: str, expected: Optional[str]) -> None:
    supplied = headers.get(header)
    if not expected or not supplied:
        raise UnauthorizedError("unauthorized")
    # compare_digest only accepts ASCII str; headers may carry any latin-1 text
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise UnauthorizedError("unauthorized")


def query_value(query: Query, name: str) -> Optional[str]:
    values = query.get(name) or []
    value = values[0].strip() if values else ""
    return value or None


def int_param(query: Query, name: str, minimum: int = 1) -> Optional[int]:
    value = query_value(query, name)
    if value is None:
        return None
    try:
        number = int(value)
    except ValueError:
        raise RequestError(f"invalid {name}: {value!r}")
    if number < minimum:
        raise RequestError(f"invalid {name}: {value!r}")
    return number


def bool_param(query: Query, name: str) -> bool:
    value = query_value(query, name)
    return bool(value) and value.lower() in ("true", "1", "yes")


def season_param(ctx: RequestContext) -> int:
    return int_param(ctx.query, "season", minimum=1920) or ctx.settings.season


async def import_schedule(ctx: RequestContext) -> ApiResponse:
    check_secret(ctx.headers, CRON_SECRET_HEADER, ctx.settings.cron_secret)
    season = season_param(ctx)
    store = await ctx.store_factory(ctx.settings)
    async with store, ctx.feed_factory(ctx.settings) as feed:
        result = await run_schedule_ingestion(ctx.settings, store, feed, season=season)
    return ApiResponse(
        status=200,
        body={
            "ok": True,
            "season": result.season,
            "count": result.games,
            "weeks": result.weeks,
            "tiebreakers": {str(k): v for k, v in result.tiebreakers.items()},
        },
    )


async def score(ctx: RequestContext) -> ApiResponse:
    check_secret(ctx.headers, CRON_SECRET_HEADER, ctx.settings.cron_secret)
    season = season_param(ctx)
    week = int_param(ctx.query, "week")
    all_weeks = bool_param(ctx.query, "allWeeks")
    source_name = (query_value(ctx.query, "source") or ScoreSource.NFLVERSE.value).lower()
    try:
        source = ScoreSource(source_name)
    except ValueError:
        raise RequestError(f"invalid source: {source_name!r}")

    store = await ctx.store_factory(ctx.settings)
    async with store, ctx.feed_factory(ctx.settings) as feed:
        result = await run_score_ingestion(
            ctx.settings,
            store,
            feed,
            season=season,
            week=week,
            all_weeks=all_weeks,
            source=source,
        )
    body = {
        "ok": True,
        "season": result.season,
        "weeks": result.weeks,
        "updated": result.updated,
        "applied_by_week": {str(k): v for k, v in result.applied_by_week.items()},
    }
    if result.note:
        body["note"] = result.note
    return ApiResponse(status=200, body=body)


async def tiebreakers(ctx: RequestContext) -> ApiResponse:
    check_secret(ctx.headers, CRON_SECRET_HEADER, ctx.settings.cron_secret)
    season = season_param(ctx)
    async with await ctx.store_factory(ctx.settings) as store:
        assigned = await ensure_tiebreakers(store, season)
    return ApiResponse(
        status=200,
        body={"ok": True, "season": season, "assigned": {str(k): v for k, v in assigned.items()}},
    )


async def score_webhook(ctx: RequestContext) -> ApiResponse:
    check_secret(ctx.headers, WEBHOOK_SECRET_HEADER, ctx.settings.webhook_secret)
    try:
        payload = json.loads(ctx.body or b"null")
    except ValueError:
        raise RequestError("body is not valid JSON")
    if not isinstance(payload, dict):
        raise RequestError("missing fields")
    async with await ctx.store_factory(ctx.settings) as store:
        game = await apply_score_webhook(store, payload)
    return ApiResponse(status=200, body={"ok": True, "game": game.model_dump(mode="json")})


def adapter(kind: FeedKind) -> Callable[[RequestContext], Awaitable[ApiResponse]]:
    async def route(ctx: RequestContext) -> ApiResponse:
        season = season_param(ctx)
        week = int_param(ctx.query, "week")
        async with ctx.feed_factory(ctx.settings) as feed:
            csv_text = await build_canonical_csv(ctx.settings, feed, kind, season=season, week=week)
        return ApiResponse(
            status=200, body=csv_text, content_type="text/csv; charset=utf-8"
        )

    return route


async def health(ctx: RequestContext) -> ApiResponse:
    return ApiResponse(status=200, body={"status": "ok"})


ROUTES: Dict[tuple, Callable[[RequestContext], Awaitable[ApiResponse]]] = {
    ("POST", "/api/cron/import-schedule"): import_schedule,
    ("POST", "/api/cron/score"): score,
    ("POST", "/api/cron/tiebreakers"): tiebreakers,
    ("POST", "/api/webhooks/score"): score_webhook,
    ("GET", "/api/adapters/nflverse"): adapter(FeedKind.NFLVERSE),
    ("GET", "/api/adapters/espn"): adapter(FeedKind.ESPN),
    ("GET", "/api/health"): health,
}


async def dispatch(method: str, path: str, ctx: RequestContext) -> ApiResponse:
    """Runs the route for (method, path) and converts any failure into an error response."""
    path = path.rstrip("/") or "/"
    route = ROUTES.get((method.upper(), path))
    try:
        if route is None:
            raise RouteNotFoundError(f"no route {method} {path}")
        return await route(ctx)
    except UnauthorizedError as e:
        logger.warning(f"Rejected {method} {path}: {e}")
        return error_response(401, str(e))
    except RequestError as e:
        return error_response(400, str(e))
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        return error_response(400, f"missing or invalid fields: {', '.join(fields)}")
    except (EmptyFeedError, UnknownGameError, RouteNotFoundError) as e:
        logger.warning(f"{method} {path}: {e}")
        return error_response(404, str(e))
    except (FeedError, StoreError, ConfigurationError) as e:
        logger.error(f"{method} {path} failed: {e}")
        return error_response(500, str(e))
    except Exception as e:
        logger.exception(f"Unexpected error handling {method} {path}")
        return error_response(500, str(e) or e.__class__.__name__)
