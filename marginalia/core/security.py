from datetime import datetime, timedelta, UTC
from typing import Annotated
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.orm import Session
from marginalia.core.config import get_settings
from marginalia.models.user import User
from marginalia.schemas.user import SessionUser

# JWT
ALGORITHM = "HS256"
SESSION_COOKIE = "session"
STATE_COOKIE = "oauth_state"
STATE_TOKEN_EXPIRE_MINUTES = 10

# Sessions may also arrive as a bearer token
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/signin", auto_error=False)

def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a signed session token"""
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=get_settings().session_ttl_minutes)
    to_encode.update({"exp": datetime.now(UTC) + expires_delta})
    return jwt.encode(to_encode, get_settings().secret_key, algorithm=ALGORITHM)

def create_session_token(email: str, name: str | None = None, picture: str | None = None) -> str:
    """Create the session token for a signed-in identity"""
    return create_access_token({"sub": email.lower(), "name": name, "picture": picture})

def decode_session_token(token: str | None) -> SessionUser | None:
    """Return the identity in ``token`` if it verifies and is the allow-listed admin"""
    if not token:
        return None
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None

    email = payload.get("sub")
    if not email or not is_allowed_email(email):
        return None
    return SessionUser(email=email, name=payload.get("name"), image=payload.get("picture"))

def is_allowed_email(email: str) -> bool:
    allowed = get_settings().allowed_email
    return bool(allowed) and email.strip().lower() == allowed

def session_from_request(request: Request, bearer_token: str | None = None) -> SessionUser | None:
    """Read the session from the bearer token or the session cookie"""
    return decode_session_token(bearer_token or request.cookies.get(SESSION_COOKIE))

def get_optional_session(
    request: Request,
    token: str | None = Depends(optional_oauth2_scheme),
) -> SessionUser | None:
    """Get the current session (optional)"""
    return session_from_request(request, token)

def require_session(
    current: Annotated[SessionUser | None, Depends(get_optional_session)],
) -> SessionUser:
    """Get the current session, 401 without one"""
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current

def upsert_user(session: Session, identity: SessionUser) -> User:
    """Find or create the user row for a session.

    Sessions are stateless tokens, so the row is created lazily on the first write.
    """
    user = session.execute(select(User).where(User.email == identity.email)).scalar_one_or_none()
    if user is None:
        user = User(email=identity.email)
        session.add(user)
    user.name = identity.name
    user.image = identity.image
    session.flush()
    return user

def create_state_token(next_url: str) -> str:
    """Signed OAuth state, also carries where to go after sign-in"""
    return create_access_token(
        {"purpose": "oauth_state", "next": next_url},
        expires_delta=timedelta(minutes=STATE_TOKEN_EXPIRE_MINUTES),
    )

def decode_state_token(token: str | None) -> dict | None:
    if not token:
        return None
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("purpose") != "oauth_state":
        return None
    return payload

SessionDep = Annotated[SessionUser, Depends(require_session)]
OptionalSessionDep = Annotated[SessionUser | None, Depends(get_optional_session)]
