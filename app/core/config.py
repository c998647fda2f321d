from pydantic_settings import BaseSettings
from typing import List
import os


class Settings(BaseSettings):
    # App Configuration
    APP_NAME: str = "BrightMinds API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    ALLOWED_HOSTS: List[str] = ["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"]

    # Frontend (used for redirect URLs when the request carries no Origin header)
    FRONTEND_URL: str = "http://localhost:5173"

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./brightminds.db")

    # Authentication (JWT secret shared with the auth provider)
    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key-here")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # AI gateway (OpenAI-compatible chat completions)
    AI_GATEWAY_API_KEY: str = os.getenv("AI_GATEWAY_API_KEY", "")
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1"
    AI_MATCH_MODEL: str = "google/gemini-2.5-flash"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""

    # PayPal
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_SECRET: str = ""
    PAYPAL_API_BASE: str = "https://api-m.sandbox.paypal.com"

    # SMS (Twilio)
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""

    # Email (Resend)
    RESEND_API_KEY: str = ""
    FROM_EMAIL: str = "BrightMinds <notifications@brightmindsmatch.org>"

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 15.0

    class Config:
        env_file = ".env"
        case_sensitive = True


# Create settings instance
settings = Settings()

# Update allowed hosts for production
if os.getenv("ENVIRONMENT") == "production":
    settings.ALLOWED_HOSTS.extend([
        "https://brightmindsmatch.org",
        "https://www.brightmindsmatch.org"
    ])
