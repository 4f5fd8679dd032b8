import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

from config import LOG_LEVEL, PUBLIC_PATHS, TZ_OFFSET_COOKIE_NAME, _current_user_id, _set_client_clock
from db import init_db
from security import (
    _csrf_header_valid,
    _ensure_csrf_cookie,
    _get_authenticated_user,
    _has_any_user,
    _is_same_origin,
)
from store import ReminderCache, ReminderStore
from routers import auth, consultation, diagnosis, emergency, reminders, settings, wellness

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title="VitaShifa")
app.state.reminders = ReminderCache(ReminderStore())

app.include_router(auth.router)
app.include_router(reminders.router)
app.include_router(consultation.router)
app.include_router(diagnosis.router)
app.include_router(wellness.router)
app.include_router(settings.router)
app.include_router(emergency.router)


@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    path = request.url.path
    _set_client_clock(request.cookies.get(TZ_OFFSET_COOKIE_NAME, ""))
    if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        if not _is_same_origin(request):
            logger.warning("Rejected cross-origin %s %s", request.method, path)
            if path.startswith("/api/"):
                return JSONResponse({"error": "forbidden"}, status_code=403)
            return RedirectResponse(url="/login?error=Forbidden+request", status_code=303)
        if path.startswith("/api/") and not _csrf_header_valid(request):
            return JSONResponse({"error": "forbidden"}, status_code=403)

    if path in PUBLIC_PATHS:
        return _ensure_csrf_cookie(request, await call_next(request))

    user = _get_authenticated_user(request)
    if not user:
        if path.startswith("/api/"):
            return JSONResponse({"error": "unauthorized"}, status_code=401)
        if not _has_any_user():
            return RedirectResponse(url="/signup", status_code=303)
        return RedirectResponse(url="/login", status_code=303)
    _current_user_id.set(user["id"])
    return _ensure_csrf_cookie(request, await call_next(request))


@app.get("/")
def root():
    return RedirectResponse(url="/reminders", status_code=303)
