from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./wa_admin.db"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Webhook handshake secret (hub.verify_token)
    WEBHOOK_VERIFY_TOKEN: str = ""

    # Operator account
    ADMIN_USERNAME: str = ""
    ADMIN_PASSWORD: str = ""
    AUTH_TOKEN_SECRET: str = ""
    AUTH_TOKEN_TTL_HOURS: int = 24

    # WhatsApp Cloud API
    WHATSAPP_ACCESS_TOKEN: str = ""
    WHATSAPP_API_VERSION: str = "v23.0"
    WHATSAPP_API_BASE_URL: str = "https://graph.facebook.com"

    # Chat completion provider
    OPENAI_API_KEY: str = ""
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_MODEL: str = "gpt-4o-mini"

    HTTP_TIMEOUT_SECONDS: float = 30.0

    @property
    def token_signing_key(self) -> str:
        """Key used to sign operator tokens; falls back to the admin password."""
        return self.AUTH_TOKEN_SECRET or self.ADMIN_PASSWORD


def get_settings() -> Settings:
    """
    Build a settings instance from the current environment.
    Not cached: secrets are read at request time.
    """
    return Settings()
