"""
Unauthenticated endpoints: login, city list and health check.
"""
from fastapi import APIRouter, Depends, Response
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import get_settings
from ...error_handling.exceptions import DatabaseConnectionError
from ...models.database import get_db
from ...models.schemas import AuthenticatedUser, LoginRequest
from ...security import issue_token
from ...services.dinner_service import DinnerService
from ...services.member_service import MemberService
from ..dependencies import AUTH_COOKIE_NAME

router = APIRouter(tags=["public"])


@router.post("/auth/login")
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """
    Check email and password, return a session token and set it as an
    HTTP-only cookie.
    """
    settings = get_settings()
    member = MemberService(db).authenticate(payload.email, payload.password)

    token = issue_token(
        member.id,
        member.email,
        member.role,
        settings.jwt_secret,
        ttl_days=settings.token_ttl_days,
    )
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.token_ttl_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )

    return {
        "message": "Login successful",
        "user": AuthenticatedUser.model_validate(member),
        "token": token,
    }


@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(key=AUTH_COOKIE_NAME, path="/", httponly=True, samesite="strict")
    return {"success": True}


@router.get("/cities")
def list_cities(db: Session = Depends(get_db)):
    return {"cities": DinnerService(db).list_cities()}


@router.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        raise DatabaseConnectionError(
            f"Health check failed: {e}",
            user_message="Database unavailable",
            operation="health_check",
            original_error=e
        ) from e
    logger.debug("Health check passed")
    return {"status": "ok", "database": "connected"}
