import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request

from src.commands.filter.security import secure_compare
from src.config.settings import AdapterConfig
from src.routers.dependencies import get_config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    authenticated: bool
    error: Optional[str] = None


def _basic_auth_password(credentials: str) -> Optional[str]:
    """Password half of base64(username:password), or None if malformed"""
    try:
        decoded = base64.b64decode(credentials.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None

    username, separator, password = decoded.partition(":")
    if not separator:
        return None
    return password


def authenticate(authorization: Optional[str], token: Optional[str]) -> AuthResult:
    """
    Check an Authorization header against the configured token.

    Accepted forms:
    - Bearer <token>
    - Basic base64(<any username>:<token>), the form Upstash clients send

    Every request is accepted when no token is configured.
    """
    if not token:
        return AuthResult(authenticated=True)

    if not authorization:
        return AuthResult(False, "Unauthorized - Missing Authorization header")

    scheme = authorization[:7].lower()

    if scheme.startswith("bearer "):
        if secure_compare(authorization[7:].strip(), token):
            return AuthResult(authenticated=True)
        return AuthResult(False, "Unauthorized - Invalid token")

    if scheme.startswith("basic "):
        password = _basic_auth_password(authorization[6:])
        if password is not None and secure_compare(password, token):
            return AuthResult(authenticated=True)
        return AuthResult(False, "Unauthorized - Invalid credentials")

    return AuthResult(False, "Unauthorized - Unsupported authentication method")


async def require_auth(
    request: Request, config: AdapterConfig = Depends(get_config)
) -> None:
    """Reject the request with 401 unless it carries valid credentials"""
    result = authenticate(request.headers.get("authorization"), config.token)
    if not result.authenticated:
        logger.debug(f"Rejected {request.method} {request.url.path}: {result.error}")
        raise HTTPException(status_code=401, detail=result.error or "Unauthorized")
