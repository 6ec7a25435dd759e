from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Multiblog Platform"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database settings
    database_url: str = "sqlite+aiosqlite:///./multiblog.db"

    # Routing settings
    platform_domain: str = "platform.tld"
    # Labels under the platform domain that belong to the platform itself
    reserved_labels: list[str] = ["www", "admin", "api", "app", "signup", "login", "mail", "static", "status"]
    resolver_cache_ttl_seconds: float = 5.0
    resolver_cache_max_entries: int = 10_000
    routing_key_grace_period_days: int = 30

    # Onboarding settings
    registration_session_ttl_seconds: int = 60 * 60 * 24
    provisioning_commit_timeout_seconds: float = 5.0
    session_sweep_interval_seconds: int = 15 * 60
    subdomain_suggestion_count: int = 3
    available_themes: list[str] = ["classic", "minimal", "magazine", "journal"]
    default_theme: str = "classic"
    default_plan_tier: str = "free"

    # Security settings
    admin_api_token: str = ""

    # Logging settings
    log_level: str = "INFO"
    log_json: bool = True

    # Notification settings
    email_from: str = "no-reply@platform.tld"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
