"""
Application configuration settings.
Loads from .env file first (overrides shell env for local dev), then pydantic reads from environment.
Production: set env vars in the platform (Docker, K8s, etc.); .env is optional.

Application settings and constants live here.
"""
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env path: outreach/.env (absolute path, works regardless of cwd)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = (_BASE_DIR / ".env").resolve()

# When .env doesn't exist (prod), this is a no-op; platform env vars are used.
if _ENV_FILE.exists():
    load_dotenv(_ENV_FILE, override=True)


class Settings(BaseSettings):
    """Application settings. Source: env vars (after dotenv load)."""

    # App
    app_name: str = "OutreachAI"
    app_version: str = "1.0.0"
    port: int = 8000
    environment: str = "development"
    cors_origins: str = "*"

    # Database
    database_url: str = "sqlite:///./outreach.db"

    # Auth
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24
    oauth_state_expire_minutes: int = 10

    # Upload & storage
    upload_dir: str = "uploads"

    # Redis
    redis_url: str = ""

    # Cache TTLs (seconds)
    dashboard_summary_cache_ttl: int = 120

    # HTTP / network
    http_request_timeout: int = 30

    # Public URLs (tracking links, OAuth and payment redirects)
    app_url: str = ""
    auth_callback_url: str = ""
    vercel_url: str = ""

    # Encryption (Gmail tokens at rest)
    encryption_key: str = "default-key-change-in-production"

    # Google OAuth / Gmail
    google_client_id: str = ""
    google_client_secret: str = ""

    # AI providers
    default_ai_provider: str = "gemini"
    google_gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    groq_api_key: str = ""
    groq_model: str = "llama-3.3-70b-versatile"
    groq_base_url: str = "https://api.groq.com/openai/v1"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    ai_max_tokens: int = 1500
    ai_temperature: float = 0.7

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_pro_price_id: str = ""

    # PayPal
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_mode: str = "sandbox"  # sandbox | live

    # SMTP (broadcasts). Falls back to Gmail app password when smtp_host is empty.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    gmail_user: str = ""
    gmail_app_password: str = ""

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()


# --- Constants (non-env, business config) ---

# Billing
PRO_MONTHLY_PRICE: float = 10.00
PRO_CURRENCY: str = "USD"
PRO_PLAN_DESCRIPTION: str = "OutreachAI Pro - Monthly Subscription"
FREE_EMAIL_LIMIT: int = 1

# Email generation rate limit (per user, in-process)
GENERATE_RATE_LIMIT: int = 10
GENERATE_RATE_WINDOW_SECONDS: int = 60

# Uploads
MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
DOCUMENT_MIME_TYPES: dict[str, str] = {
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/msword": ".doc",
    "text/plain": ".txt",
}
DOCUMENTS_SUBDIR: str = "documents"
ATTACHMENTS_SUBDIR: str = "attachments"
EXTRACTED_TEXT_MAX_CHARS: int = 50_000

# Bulk email (admin broadcasts)
BULK_EMAIL_DELAY_SECONDS: float = 0.1

# Gmail
GMAIL_TOKEN_REFRESH_MARGIN_SECONDS: int = 5 * 60

# Tracking
LOCAL_BASE_URL: str = "http://localhost:8000"

# Anonymous analytics session cookie
SESSION_COOKIE_NAME: str = "session_id"
SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30
