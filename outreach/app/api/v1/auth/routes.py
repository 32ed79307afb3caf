"""
Authentication endpoints - register, login, current user, token refresh
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from outreach.app.core.dependencies import get_current_user, get_db, security
from outreach.app.core.logging_config import get_logger
from outreach.app.core.security import decode_refreshable_token
from outreach.app.models.user import STATUS_ACTIVE, User
from outreach.app.schemas.user import TokenResponse, UserLogin, UserRegister, UserResponse
from outreach.app.services.auth_service import AuthService, issue_token

logger = get_logger("api.auth")
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """
    Register a new user account and log it in.

    - **name**: display name
    - **email**: must be unique
    - **password**: at least 8 characters
    """
    try:
        result = AuthService.register_user(db, user_data)
        if not result["success"]:
            raise HTTPException(status_code=result["status"], detail=result["message"])
        return TokenResponse(
            access_token=result["access_token"],
            token_type=result["token_type"],
            user=UserResponse.model_validate(result["user"]),
            message=result["message"],
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Registration failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Registration failed",
        )


@router.post("/login", response_model=TokenResponse)
def login(login_data: UserLogin, db: Session = Depends(get_db)):
    """Login user and get access token"""
    try:
        result = AuthService.login_user(db, login_data)
        if not result["success"]:
            headers = {"WWW-Authenticate": "Bearer"} if result["status"] == 401 else None
            raise HTTPException(status_code=result["status"], detail=result["message"], headers=headers)
        return TokenResponse(
            access_token=result["access_token"],
            token_type=result["token_type"],
            user=UserResponse.model_validate(result["user"]),
            message=result["message"],
        )
    except HTTPException:
        raise
    except Exception:
        logger.exception("Login failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Login failed",
        )


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.post("/refresh", response_model=TokenResponse)
def refresh(credentials=Depends(security), db: Session = Depends(get_db)):
    """Exchange a signed token, expired or not, for a fresh one."""
    user_id = decode_refreshable_token(credentials.credentials) if credentials else None
    user = db.query(User).filter(User.id == user_id).first() if user_id else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.status != STATUS_ACTIVE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")
    return TokenResponse(access_token=issue_token(user), user=UserResponse.model_validate(user))
