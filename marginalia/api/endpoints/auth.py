import logging
from urllib.parse import urlencode, urlsplit
import requests
from fastapi import APIRouter, Request, status
from fastapi.responses import RedirectResponse
from marginalia.core.config import get_settings
from marginalia.core.security import (
    SESSION_COOKIE,
    STATE_COOKIE,
    STATE_TOKEN_EXPIRE_MINUTES,
    OptionalSessionDep,
    create_session_token,
    create_state_token,
    decode_state_token,
    is_allowed_email,
)

logger = logging.getLogger(__name__)

router = APIRouter()

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
OAUTH_TIMEOUT = 10

_URL_STRIPPED = str.maketrans("", "", "\t\n\r")


def callback_url() -> str:
    return f"{get_settings().site_url}/api/auth/callback"


def safe_next(next_url: str | None) -> str:
    """Only same-site paths are followed after sign-in"""
    if not next_url or not next_url.startswith("/") or next_url[1:2] in ("/", "\\"):
        return "/admin"
    # browsers read "\" as "/" and drop tabs and newlines
    parts = urlsplit(next_url.replace("\\", "/").translate(_URL_STRIPPED))
    if parts.scheme or parts.netloc or not parts.path.startswith("/") or parts.path.startswith("//"):
        return "/admin"
    return next_url


def login_redirect(error: str) -> RedirectResponse:
    response = RedirectResponse(f"/login?{urlencode({'error': error})}", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(STATE_COOKIE)
    return response


def fetch_google_identity(code: str) -> dict:
    """Exchange an authorization code for the Google account's userinfo"""
    settings = get_settings()
    token_response = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "redirect_uri": callback_url(),
            "grant_type": "authorization_code",
        },
        timeout=OAUTH_TIMEOUT,
    )
    token_response.raise_for_status()
    access_token = token_response.json()["access_token"]

    userinfo_response = requests.get(
        GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=OAUTH_TIMEOUT,
    )
    userinfo_response.raise_for_status()
    return userinfo_response.json()


@router.get("/signin", summary="Start Google sign-in")
def signin(next: str | None = None):
    """Redirect to Google with a signed state cookie"""
    settings = get_settings()
    state = create_state_token(safe_next(next))
    params = {
        "client_id": settings.google_client_id,
        "redirect_uri": callback_url(),
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    response = RedirectResponse(f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}", status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=settings.site_url.startswith("https://"),
    )
    return response


@router.get("/callback", summary="Finish Google sign-in")
def callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
):
    """Only the allow-listed e-mail gets a session"""
    if error:
        return login_redirect(error)

    cookie_state = request.cookies.get(STATE_COOKIE)
    payload = decode_state_token(state)
    if not code or payload is None or state != cookie_state:
        return login_redirect("OAuthCallback")

    try:
        identity = fetch_google_identity(code)
    except (requests.RequestException, KeyError, ValueError):
        logger.exception("Google sign-in failed")
        return login_redirect("OAuthCallback")

    email = identity.get("email") or ""
    if not identity.get("email_verified", False) or not is_allowed_email(email):
        logger.warning("Rejected sign-in for %s", email or "<no email>")
        return login_redirect("AccessDenied")

    settings = get_settings()
    token = create_session_token(email, identity.get("name"), identity.get("picture"))
    response = RedirectResponse(safe_next(payload.get("next")), status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_ttl_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.site_url.startswith("https://"),
    )
    response.delete_cookie(STATE_COOKIE)
    logger.info("Signed in %s", email)
    return response


@router.post("/signout", summary="Sign out")
def signout():
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.get("/session", summary="Current session")
def read_session(current: OptionalSessionDep) -> dict:
    """The signed-in identity, or an empty object"""
    if current is None:
        return {}
    return {"user": current.model_dump()}
