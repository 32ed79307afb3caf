"""
Authentication service business logic
"""
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from outreach.app.core.logging_config import get_logger
from outreach.app.core.security import create_access_token, get_password_hash, verify_password
from outreach.app.models.user import STATUS_ACTIVE, STATUS_BANNED, User
from outreach.app.schemas.user import UserLogin, UserRegister
from outreach.app.services.app_settings import get_setting
from outreach.app.utils.text import is_valid_email, truncate

logger = get_logger("services.auth")


def issue_token(user: User) -> str:
    return create_access_token(data={"sub": str(user.id), "email": user.email})


class AuthService:
    """Service for authentication operations"""

    @staticmethod
    def register_user(db: Session, user_data: UserRegister):
        """Register a new user; the caller is logged in immediately."""
        if not get_setting(db, "app.signups_enabled", True):
            return {"success": False, "status": 403, "message": "Sign-ups are currently disabled"}

        email = (user_data.email or "").strip().lower()
        name = truncate((user_data.name or "").strip(), 100)
        if not name or not email or not user_data.password:
            return {"success": False, "status": 400, "message": "Name, email and password are required"}
        if not is_valid_email(email):
            return {"success": False, "status": 400, "message": "Invalid email format"}
        if len(user_data.password) < 8:
            return {"success": False, "status": 400, "message": "Password must be at least 8 characters"}

        if db.query(User).filter(User.email == email).first():
            return {"success": False, "status": 400, "message": "Email already registered"}

        new_user = User(
            name=name,
            email=email,
            hashed_password=get_password_hash(user_data.password),
            last_login_at=datetime.utcnow(),
        )
        try:
            db.add(new_user)
            db.commit()
        except IntegrityError:
            db.rollback()
            return {"success": False, "status": 400, "message": "Email already registered"}
        db.refresh(new_user)
        logger.info("User registered user_id=%s", new_user.id)

        return {
            "success": True,
            "user": new_user,
            "message": "User registered successfully",
            "access_token": issue_token(new_user),
            "token_type": "bearer",
        }

    @staticmethod
    def login_user(db: Session, login_data: UserLogin):
        """Authenticate user and return access token"""
        email = (login_data.email or "").strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(login_data.password, user.hashed_password):
            return {"success": False, "status": 401, "message": "Invalid email or password"}

        if user.status != STATUS_ACTIVE:
            reason = "banned" if user.status == STATUS_BANNED else "suspended"
            logger.info("Login refused user_id=%s status=%s", user.id, user.status)
            return {"success": False, "status": 403, "message": f"Your account has been {reason}"}

        user.last_login_at = datetime.utcnow()
        db.commit()

        return {
            "success": True,
            "access_token": issue_token(user),
            "token_type": "bearer",
            "user": user,
            "message": "Login successful",
        }
