"""
Admin back-office schemas, including the closed set of runtime settings.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class UserActionRequest(BaseModel):
    action: Literal[
        "make_admin",
        "remove_admin",
        "suspend",
        "ban",
        "activate",
        "grant_pro",
        "revoke_pro",
        "reset_email_count",
    ]
    months: int = Field(default=1, ge=1, le=36)


class PromoCodeCreate(BaseModel):
    code: str = Field(min_length=2, max_length=50)
    description: Optional[str] = None
    discount_type: Literal["PERCENTAGE", "FIXED_AMOUNT", "FREE_TRIAL"]
    discount_value: float = Field(gt=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True


class PromoCodeUpdate(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[Literal["PERCENTAGE", "FIXED_AMOUNT", "FREE_TRIAL"]] = None
    discount_value: Optional[float] = Field(default=None, gt=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None


class PromoCodeResponse(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    max_uses: Optional[int] = None
    current_uses: int = 0
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


AnnouncementTarget = Literal["ALL", "ADMIN", "PRO", "FREE", "USER"]


class AnnouncementCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    type: Literal["INFO", "WARNING", "SUCCESS", "ERROR"] = "INFO"
    target_roles: List[AnnouncementTarget] = Field(default_factory=lambda: ["ALL"])
    is_active: bool = True
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = None
    type: Optional[Literal["INFO", "WARNING", "SUCCESS", "ERROR"]] = None
    target_roles: Optional[List[AnnouncementTarget]] = None
    is_active: Optional[bool] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None


class SupportTicketUpdate(BaseModel):
    status: Optional[Literal["OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED"]] = None
    priority: Optional[Literal["LOW", "MEDIUM", "HIGH", "URGENT"]] = None
    admin_notes: Optional[str] = None


class BroadcastCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1)
    target_type: Literal["ALL", "PRO_USERS", "FREE_USERS", "SPECIFIC_USERS"] = "ALL"
    target_user_ids: List[int] = Field(default_factory=list)


class BroadcastUpdate(BaseModel):
    subject: Optional[str] = Field(default=None, min_length=1, max_length=500)
    content: Optional[str] = None
    target_type: Optional[Literal["ALL", "PRO_USERS", "FREE_USERS", "SPECIFIC_USERS"]] = None
    target_user_ids: Optional[List[int]] = None


class BroadcastResponse(BaseModel):
    id: int
    subject: str
    content: str
    target_type: str
    target_user_ids: List[int] = Field(default_factory=list)
    status: str
    sent_count: int = 0
    failed_count: int = 0
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Runtime settings: every recognized key and the shape of its value ---

class DefaultAIProviderSetting(BaseModel):
    key: Literal["ai.default_provider"]
    value: Literal["gemini", "groq", "claude", "chatgpt"]


class GenerateRateLimitSetting(BaseModel):
    key: Literal["ai.rate_limit_per_minute"]
    value: int = Field(ge=1, le=120)


class FreeEmailLimitSetting(BaseModel):
    key: Literal["billing.free_email_limit"]
    value: int = Field(ge=0, le=1000)


class SignupsEnabledSetting(BaseModel):
    key: Literal["app.signups_enabled"]
    value: bool


AppSettingIn = Annotated[
    Union[
        DefaultAIProviderSetting,
        GenerateRateLimitSetting,
        FreeEmailLimitSetting,
        SignupsEnabledSetting,
    ],
    Field(discriminator="key"),
]
app_setting_adapter: TypeAdapter = TypeAdapter(AppSettingIn)

SETTING_CATEGORIES: dict[str, str] = {
    "ai.default_provider": "ai",
    "ai.rate_limit_per_minute": "ai",
    "billing.free_email_limit": "billing",
    "app.signups_enabled": "general",
}

SETTING_DESCRIPTIONS: dict[str, str] = {
    "ai.default_provider": "Provider used when a request does not name one",
    "ai.rate_limit_per_minute": "Email generations allowed per user per minute",
    "billing.free_email_limit": "Emails a free user may generate",
    "app.signups_enabled": "Whether new accounts can register",
}
