from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from routinely import (
    WEEKDAYS,
    CompletionResetScheduler,
    DocumentStore,
    Forbidden,
    InvalidFormat,
    InvalidInput,
    NotFound,
    RoutinelyError,
    SchedulingService,
    StatsAggregator,
    TimeConflict,
    Transient,
    authenticate,
    configure_logging,
    create_user,
    find_user,
    init_workspace,
    load_config,
    start_reset_job,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotFound: status.HTTP_404_NOT_FOUND,
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    InvalidFormat: status.HTTP_400_BAD_REQUEST,
    TimeConflict: status.HTTP_400_BAD_REQUEST,
    Forbidden: status.HTTP_403_FORBIDDEN,
    Transient: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: RoutinelyError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# ── Wiring ────────────────────────────────────────────────────


def get_store() -> DocumentStore:
    return DocumentStore.open()


def get_service(store: DocumentStore = Depends(get_store)) -> SchedulingService:
    return SchedulingService(store, load_config())


def get_stats(store: DocumentStore = Depends(get_store)) -> StatsAggregator:
    return StatsAggregator(store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    root = init_workspace()
    config = load_config(root)
    configure_logging(config.log_level)
    scheduler = None
    if os.environ.get("ROUTINELY_RESET_JOB", "1") != "0":
        resetter = CompletionResetScheduler(DocumentStore.open(root), config.default_timezone)
        scheduler = start_reset_job(resetter, config.reset_interval_seconds)
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)


app = FastAPI(title="Routinely", version="0.1.0", lifespan=lifespan)


@app.exception_handler(RoutinelyError)
async def routinely_error_handler(request: Request, exc: RoutinelyError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.debug("%s %s -> %d: %s", request.method, request.url.path, code, exc.message)
    return JSONResponse(
        status_code=code,
        content={"status": "fail", "message": exc.message, "errors": exc.errors},
    )


# ── Auth ──────────────────────────────────────────────────────

security = HTTPBasic(auto_error=False)


@dataclass
class Identity:
    user_id: str
    role: str = "user"

    def is_admin(self) -> bool:
        return self.role in ("admin", "super-admin")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Basic"},
    )


def get_current_user(
    credentials: HTTPBasicCredentials | None = Depends(security),
    store: DocumentStore = Depends(get_store),
) -> Identity:
    """Username is the user id, checked against that user's password hash.

    Requests without credentials act as the unprivileged ``guest``.
    """
    if credentials is None:
        return Identity("guest")
    user = authenticate(store, credentials.username, credentials.password)
    if user is None:
        raise _unauthorized("Invalid credentials")
    return Identity(user.id, user.role)


def require_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    if not identity.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to perform this action.",
        )
    return identity


# ── HTML helpers ──────────────────────────────────────────────

def _escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def _render_week(routine_dict: dict[str, Any] | None) -> str:
    sections = []
    for day in WEEKDAYS:
        rows = []
        for a in (routine_dict or {}).get(day, []):
            done = "&#10003;" if a["isCompleted"] else ""
            rows.append(
                f'<tr><td><span class="swatch" style="background:{_escape(a["color"])}"></span></td>'
                f'<td>{a["startTime"]}&ndash;{a["endTime"]}</td>'
                f'<td>{_escape(a["label"])}</td><td>{_escape(a["category"])}</td>'
                f'<td>{a["duration"]}m</td><td>{done}</td></tr>'
            )
        body = "".join(rows) or '<tr><td colspan="6" class="muted">(nothing planned)</td></tr>'
        sections.append(f"<h2>{day.title()}</h2><table>{body}</table>")
    return "".join(sections)


# ── Endpoints ─────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/", response_class=HTMLResponse)
def index(
    identity: Identity = Depends(get_current_user),
    service: SchedulingService = Depends(get_service),
) -> HTMLResponse:
    try:
        routine = service.list_routine(identity.user_id).to_dict()
    except NotFound:
        routine = None
    html = (
        "<!doctype html><html><head><meta charset='utf-8'><title>Routinely</title>"
        "<style>body{font-family:sans-serif;max-width:760px;margin:2em auto}"
        "td{padding:2px 8px}.muted{color:#888}"
        ".swatch{display:inline-block;width:10px;height:10px;border-radius:2px}</style>"
        f"</head><body><h1>Week of {_escape(identity.user_id)}</h1>{_render_week(routine)}</body></html>"
    )
    return HTMLResponse(html)


@app.get("/api/me")
def api_get_me(identity: Identity = Depends(get_current_user), store: DocumentStore = Depends(get_store)) -> dict[str, Any]:
    return {"user": find_user(store, identity.user_id).to_dict()}


@app.post("/api/signup", status_code=status.HTTP_201_CREATED)
def api_signup(
    payload: dict[str, Any] = Body(...),
    store: DocumentStore = Depends(get_store),
) -> dict[str, Any]:
    """Register a profile (time zone, demographics) with a password. Role is always "user"."""
    if not payload.get("password"):
        raise InvalidInput("Password is required")
    data = {**payload, "role": "user"}
    return {"user": create_user(store, data).to_dict()}


@app.get("/api/routine")
def api_get_routine(identity: Identity = Depends(get_current_user), service: SchedulingService = Depends(get_service)) -> dict[str, Any]:
    return {"status": "success", "data": service.list_routine(identity.user_id).to_dict()}


@app.get("/api/routine/{day}")
def api_list_day(day: str, identity: Identity = Depends(get_current_user), service: SchedulingService = Depends(get_service)) -> dict[str, Any]:
    activities = service.list_day(identity.user_id, day)
    return {"status": "success", "results": len(activities), "data": [a.to_dict() for a in activities]}


@app.post("/api/routine/{day}", status_code=status.HTTP_201_CREATED)
def api_create_activity(
    day: str,
    payload: dict[str, Any] = Body(...),
    identity: Identity = Depends(get_current_user),
    service: SchedulingService = Depends(get_service),
) -> dict[str, Any]:
    activity = service.create_activity(identity.user_id, day, payload)
    return {"status": "success", "data": activity.to_dict()}


@app.get("/api/routine/{day}/{activity_id}")
def api_get_activity(
    day: str,
    activity_id: str,
    identity: Identity = Depends(get_current_user),
    service: SchedulingService = Depends(get_service),
) -> dict[str, Any]:
    return {"status": "success", "data": service.get_activity(identity.user_id, day, activity_id).to_dict()}


@app.patch("/api/routine/{day}/{activity_id}")
def api_update_activity(
    day: str,
    activity_id: str,
    payload: dict[str, Any] = Body(...),
    identity: Identity = Depends(get_current_user),
    service: SchedulingService = Depends(get_service),
) -> dict[str, Any]:
    activity = service.update_activity(identity.user_id, day, activity_id, payload)
    return {"status": "success", "data": activity.to_dict()}


@app.delete("/api/routine/{day}/{activity_id}")
def api_delete_activity(
    day: str,
    activity_id: str,
    identity: Identity = Depends(get_current_user),
    service: SchedulingService = Depends(get_service),
) -> dict[str, Any]:
    service.delete_activity(identity.user_id, day, activity_id)
    return {"status": "success", "data": None}


@app.post("/api/activities/{activity_id}/mark")
def api_mark_activity(
    activity_id: str,
    identity: Identity = Depends(get_current_user),
    service: SchedulingService = Depends(get_service),
) -> dict[str, Any]:
    activity = service.mark_completed(identity.user_id, activity_id, True)
    return {"status": "success", "data": activity.to_dict()}


@app.delete("/api/activities/{activity_id}/mark")
def api_unmark_activity(
    activity_id: str,
    identity: Identity = Depends(get_current_user),
    service: SchedulingService = Depends(get_service),
) -> dict[str, Any]:
    activity = service.mark_completed(identity.user_id, activity_id, False)
    return {"status": "success", "data": activity.to_dict()}


# ── Admin ─────────────────────────────────────────────────────

@app.get("/api/routines")
def api_list_routines(
    page: int = 1,
    limit: int = 10,
    identity: Identity = Depends(require_admin),
    service: SchedulingService = Depends(get_service),
) -> dict[str, Any]:
    return {"status": "success", **service.list_routines(page, limit).to_dict("data")}


@app.get("/api/stats/summary")
def api_stats_summary(identity: Identity = Depends(require_admin), stats: StatsAggregator = Depends(get_stats)) -> dict[str, Any]:
    return {"status": "success", "data": stats.summary_stats().to_dict()}


@app.get("/api/stats/categories")
def api_stats_categories(identity: Identity = Depends(require_admin), stats: StatsAggregator = Depends(get_stats)) -> dict[str, Any]:
    rows = stats.category_stats()
    return {"status": "success", "results": len(rows), "data": {"activityStats": [r.to_dict() for r in rows]}}


@app.get("/api/stats/days")
def api_stats_days(identity: Identity = Depends(require_admin), stats: StatsAggregator = Depends(get_stats)) -> dict[str, Any]:
    return {"status": "success", "data": {day: s.to_dict() for day, s in stats.day_stats().items()}}


@app.get("/api/stats/completions")
def api_stats_completions(identity: Identity = Depends(require_admin), stats: StatsAggregator = Depends(get_stats)) -> dict[str, Any]:
    rows = stats.completion_stats()
    return {"status": "success", "results": len(rows), "data": {"completionStats": [r.to_dict() for r in rows]}}


@app.get("/api/stats/nationalities")
def api_stats_nationalities(
    page: int = 1,
    limit: int = 10,
    identity: Identity = Depends(require_admin),
    stats: StatsAggregator = Depends(get_stats),
) -> dict[str, Any]:
    return {"status": "success", **stats.nationality_stats(page, limit).to_dict("nationalityStats")}


@app.get("/api/stats/birthdates")
def api_stats_birthdates(
    page: int = 1,
    limit: int = 10,
    identity: Identity = Depends(require_admin),
    stats: StatsAggregator = Depends(get_stats),
) -> dict[str, Any]:
    return {"status": "success", **stats.birth_year_stats(page, limit).to_dict("birthdateStats")}


@app.get("/api/stats/registrations")
def api_stats_registrations(
    page: int = 1,
    limit: int = 10,
    identity: Identity = Depends(require_admin),
    stats: StatsAggregator = Depends(get_stats),
) -> dict[str, Any]:
    return {"status": "success", **stats.registration_stats(page, limit).to_dict("registrationStats")}
