from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from urllib.parse import urlencode
from .api.api import api_router, site_router
from .api.endpoints.pages import not_found
from .core.config import get_settings
from .core.security import session_from_request
from .db.database import create_tables
import logging
import json

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logging.basicConfig(level=get_settings().log_level)
    # make sure tables are created
    create_tables()
    yield

logger = logging.getLogger("fastapi")

app = FastAPI(title="Marginalia", lifespan=lifespan)

# admin pages redirect to the login page, these answer 401 instead
GATED_PAGE_PREFIX = "/admin"
GATED_API_PATHS = ("/api/upload",)
REDACTED_HEADERS = {"authorization", "cookie"}


def is_gated(path: str) -> bool:
    if path == GATED_PAGE_PREFIX or path.startswith(GATED_PAGE_PREFIX + "/"):
        return True
    return path in GATED_API_PATHS


@app.middleware("http")
async def require_admin_session(request: Request, call_next):
    """Routing-level gate; handlers check the session again"""
    path = request.url.path
    authorization = request.headers.get("authorization", "")
    bearer = authorization[7:] if authorization.lower().startswith("bearer ") else None
    if not is_gated(path) or session_from_request(request, bearer) is not None:
        return await call_next(request)

    if path.startswith("/api/"):
        return JSONResponse({"detail": "Unauthorized"}, status_code=status.HTTP_401_UNAUTHORIZED)

    target = path if not request.url.query else f"{path}?{request.url.query}"
    return RedirectResponse(f"/login?{urlencode({'next': target})}", status_code=status.HTTP_303_SEE_OTHER)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    content_type = request.headers.get("content-type", "")
    body = b"" if content_type.startswith("multipart/") else await request.body()
    request_info = {
        "url": str(request.url),
        "method": request.method,
        "headers": {
            key: ("<redacted>" if key.lower() in REDACTED_HEADERS else value)
            for key, value in request.headers.items()
        },
        "body": body.decode(errors="replace") if body else None,
        "path_params": request.path_params,
        "query_params": dict(request.query_params)
    }

    # execute the request
    response = await call_next(request)

    if response.status_code >= 400:
        response_body = b""
        async for chunk in response.body_iterator:
            response_body += chunk

        logger.error(
            f"Request failed with status {response.status_code}\n"
            f"Request: {json.dumps(request_info, indent=2, default=str)}\n"
            f"Response: {response_body.decode(errors='replace')}\n"
        )
        return Response(
            content=response_body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )

    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Invalid input is a 400, with the first problem spelled out"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid request")
    detail = f"{field}: {message}" if field else message
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": detail, "errors": json.loads(json.dumps(errors, default=str))},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Unknown pages get the 404 page, everything else keeps the JSON body"""
    if exc.status_code == status.HTTP_404_NOT_FOUND and not request.url.path.startswith("/api/"):
        return not_found(request, session_from_request(request))
    return JSONResponse(
        {"detail": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log the failure, answer without internal detail"""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# register the API router
app.include_router(api_router, prefix="/api")
app.include_router(site_router)
app.mount("/static", StaticFiles(directory=Path(__file__).resolve().parent / "static"), name="static")
