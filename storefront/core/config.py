# storefront/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_list(name: str, default: str = "") -> list[str]:
    return [value.strip() for value in os.getenv(name, default).split(",") if value.strip()]


class Settings:
    # --- API Info ---
    API_TITLE: str = "Immo1 Storefront API"
    API_DESCRIPTION: str = "Storefront backend: catalog, cart, checkout, authentication and back office."
    API_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # --- Server Configuration ---
    PORT: int = int(os.getenv("PORT", "8000"))
    HOST: str = os.getenv("HOST", "0.0.0.0")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    CORS_ORIGINS: list[str] = _env_list(
        "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
    )

    # --- Database ---
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./storefront.db")

    # --- Auth & sessions ---
    ENCODING_SECRET_KEY: str = os.getenv("ENCODING_SECRET_KEY") or "dev-secret-change-me"
    ENCODING_ALGORITHM: str = os.getenv("ENCODING_ALGORITHM", "HS256")
    SESSION_EXPIRE_DAYS: int = int(os.getenv("SESSION_EXPIRE_DAYS", "7"))
    PASSWORD_RESET_TOKEN_EXPIRE_HOURS: int = int(os.getenv("PASSWORD_RESET_TOKEN_EXPIRE_HOURS", "1"))
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_MAX_LENGTH: int = 20
    OTP_LENGTH: int = int(os.getenv("OTP_LENGTH", "6"))
    OTP_EXPIRE_SECONDS: int = int(os.getenv("OTP_EXPIRE_SECONDS", "300"))
    OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
    ADMIN_EMAILS: list[str] = [email.lower() for email in _env_list("ADMIN_EMAILS")]
    FRONTEND_BASE_URL: str = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")

    # Cookie session carrying the cart and OAuth state
    SESSION_SECRET_KEY: str = os.getenv("SESSION_SECRET_KEY", "fallback-secret-key")
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "immo1_session")
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30

    # Google sign-in
    GOOGLE_CLIENT_ID: str = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET: str = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_REDIRECT_URI: str = os.getenv("GOOGLE_REDIRECT_URI", "")

    # --- Rate limiting ---
    RATE_LIMIT_ENABLED: bool = _env_bool("RATE_LIMIT_ENABLED", "true")
    RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")

    # --- Stripe ---
    STRIPE_SECRET_KEY: str = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_CURRENCY: str = os.getenv("STRIPE_CURRENCY", "eur")
    STRIPE_API_VERSION: str = os.getenv("STRIPE_API_VERSION", "2024-06-20")
    PRICE_TOLERANCE: float = 0.01

    # --- Email ---
    EMAIL_ENABLED: bool = _env_bool("EMAIL_ENABLED", "false")
    MAIL_USERNAME: str = os.getenv("MAIL_USERNAME", "test@example.com")
    MAIL_PASSWORD: str = os.getenv("MAIL_PASSWORD", "password")
    MAIL_FROM: str = os.getenv("MAIL_FROM", "noreply@immo1.fr")
    MAIL_FROM_NAME: str = os.getenv("MAIL_FROM_NAME", "Immo1")
    MAIL_PORT: int = int(os.getenv("MAIL_PORT", "587"))
    MAIL_SERVER: str = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_STARTTLS: bool = _env_bool("MAIL_STARTTLS", "true")
    MAIL_SSL_TLS: bool = _env_bool("MAIL_SSL_TLS", "false")

    # --- Catalog ---
    CATEGORIES_CACHE_SECONDS: int = 900
    FEATURED_CACHE_SECONDS: int = 600
    FEATURED_DEFAULT_LIMIT: int = 6
    FEATURED_MAX_LIMIT: int = 12
    LOW_STOCK_THRESHOLD: int = 5
    DEFAULT_COUNTRY: str = "France"


settings = Settings()
