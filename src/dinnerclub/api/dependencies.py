"""
Shared FastAPI dependencies: database session and admin authentication.
"""
from typing import Optional

from fastapi import Depends, Request
from loguru import logger
from sqlalchemy.orm import Session

from ..config import get_settings
from ..error_handling.exceptions import AuthenticationError
from ..models.database import Member, get_db
from ..security import decode_token

AUTH_COOKIE_NAME = "auth-token"


def _extract_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, falling back to the auth cookie."""
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(AUTH_COOKIE_NAME)


def get_current_member(request: Request, db: Session = Depends(get_db)) -> Member:
    """
    Resolve the member behind the request's session token.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired,
            or the member no longer exists
    """
    token = _extract_token(request)
    if not token:
        raise AuthenticationError("Missing session token")

    try:
        payload = decode_token(token, get_settings().jwt_secret)
        member_id = int(payload["sub"])
    except (ValueError, KeyError) as e:
        raise AuthenticationError(f"Rejected session token: {e}") from e

    member = db.query(Member).filter(Member.id == member_id).first()
    if member is None:
        raise AuthenticationError(f"Token subject {member_id} does not exist")
    return member


def require_admin(member: Member = Depends(get_current_member)) -> Member:
    """Dependency: the authenticated member, who must have role ``admin``."""
    if member.role != "admin":
        logger.warning(f"Member {member.id} denied admin access")
        raise AuthenticationError(f"Member {member.id} is not an admin")
    return member
