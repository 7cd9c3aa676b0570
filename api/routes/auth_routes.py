"""
Authentication Routes

FastAPI routes for user registration and session-token authentication.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Header
from loguru import logger

from api.dependencies import get_activity_logger, get_clock, get_db_manager
from api.models.auth_models import (
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    RegisterRequest,
    UserInfo,
)
from quant_desk import activity_log
from quant_desk.auth_manager import AuthManager
from quant_desk.models import User


router = APIRouter()


def _session_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header"
        )
    return authorization[len("Bearer "):]


# Dependency: Get current user from session token
def get_current_user(
    authorization: Optional[str] = Header(None),
    db=Depends(get_db_manager),
    clock=Depends(get_clock)
) -> User:
    """
    Get current authenticated user from session token.

    Args:
        authorization: Authorization header (Bearer token)
        db: Database manager
        clock: Timestamp source

    Returns:
        Authenticated User

    Raises:
        HTTPException: If token invalid, session expired or account disabled
    """
    session_token = _session_token(authorization)

    session = db.get_session(session_token)
    if not session:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token"
        )

    user, expires_at = session

    # Check if session expired
    if expires_at < clock():
        db.delete_session(session_token)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please login again."
        )

    # Check if user is active
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled"
        )

    return user


@router.post("/register", response_model=UserInfo, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db=Depends(get_db_manager), clock=Depends(get_clock)):
    """
    Create a new account.

    Raises:
        HTTPException 400: username or email already taken
        DuplicateUserError: a concurrent registration claimed it first (400)
    """
    if db.username_exists(request.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username is already taken"
        )

    if db.email_exists(request.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already in use"
        )

    user = db.create_user(
        request.username,
        request.email,
        request.name,
        AuthManager.hash_password(request.password),
        request.role,
        now=clock()
    )

    logger.info(f"Registered user: {user.username} ({user.role.value})")
    return UserInfo.from_user(user)


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    request: LoginRequest,
    db=Depends(get_db_manager),
    activity=Depends(get_activity_logger),
    clock=Depends(get_clock)
):
    """
    Authenticate user with username and password.

    Creates a new session and returns its token.

    Raises:
        HTTPException 401: credentials invalid
        HTTPException 403: account disabled
    """
    credentials = db.get_user_credentials(request.username)

    if not credentials:
        logger.warning(f"Login failed: user not found ({request.username})")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    user, password_hash = credentials

    if not AuthManager.verify_password(request.password, password_hash):
        activity.record(user.username, activity_log.LOGIN_FAILURE, "Invalid password", 'User', user.id)
        logger.warning(f"Login failed: invalid password (user_id={user.id})")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password"
        )

    if not user.is_active:
        logger.warning(f"Login failed: account disabled (user_id={user.id})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled. Contact administrator."
        )

    now = clock()
    session_token = AuthManager.generate_session_token()
    expires_at = AuthManager.session_expiry(now)

    db.create_session(user.id, session_token, expires_at, now=now)
    db.update_last_login(user.id, now)
    user.last_login = now

    activity.record(user.username, activity_log.LOGIN_SUCCESS, "Logged in", 'User', user.id)
    logger.info(f"Login successful: {user.username} (user_id={user.id})")

    return LoginResponse(
        session_token=session_token,
        expires_at=expires_at,
        user=UserInfo.from_user(user)
    )


@router.post("/logout", response_model=LogoutResponse, status_code=status.HTTP_200_OK)
def logout(
    current_user: User = Depends(get_current_user),
    authorization: Optional[str] = Header(None),
    db=Depends(get_db_manager),
    activity=Depends(get_activity_logger)
):
    """Logout current user by invalidating the session."""
    db.delete_session(_session_token(authorization))

    activity.record(current_user.username, activity_log.LOGOUT, "Logged out", 'User', current_user.id)
    logger.info(f"Logout successful: {current_user.username} (user_id={current_user.id})")

    return LogoutResponse(message="Logged out successfully")


@router.get("/me", response_model=UserInfo, status_code=status.HTTP_200_OK)
def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    logger.debug(f"Get user info: {current_user.username} (user_id={current_user.id})")
    return UserInfo.from_user(current_user)
