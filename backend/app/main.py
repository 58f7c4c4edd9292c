import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.v1.accounts import router as accounts_router
from app.api.v1.admin import router as admin_router
from app.api.v1.events import router as events_router
from app.api.v1.health import router as health_router
from app.api.v1.payments import router as payments_router
from app.api.v1.players import router as players_router
from app.api.v1.registrations import router as registrations_router
from app.api.v1.tournaments import router as tournaments_router
from app.core.settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title=settings.PROJECT_NAME)

# Local dev: allow the Next.js dev server to call the API.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_error(_request: Request, exc: StarletteHTTPException):
    body = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(_request: Request, exc: RequestValidationError):
    details = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request data", "details": details})


app.include_router(
    health_router,
    prefix=settings.API_STR,
    tags=["Health"],
)
# Before tournaments_router: /tournaments/registration must not match /tournaments/{tournament_id}.
app.include_router(
    registrations_router,
    prefix=settings.API_STR,
    tags=["Registrations"],
)
app.include_router(
    tournaments_router,
    prefix=settings.API_STR,
    tags=["Tournaments"],
)
app.include_router(
    payments_router,
    prefix=settings.API_STR,
    tags=["Payments"],
)
app.include_router(
    events_router,
    prefix=settings.API_STR,
    tags=["Events"],
)
app.include_router(
    players_router,
    prefix=settings.API_STR,
    tags=["Players"],
)
app.include_router(
    accounts_router,
    prefix=settings.API_STR,
    tags=["Accounts"],
)
app.include_router(
    admin_router,
    prefix=settings.API_STR,
    tags=["Admin"],
)
