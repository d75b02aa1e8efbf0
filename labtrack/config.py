from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "LabTrack"
    DATABASE_URL: str = "sqlite:///./labtrack.db"

    # Identity: Google ID tokens restricted to one hosted domain
    ALLOWED_DOMAIN: str = "seas.upenn.edu"
    GOOGLE_CLIENT_ID: str = ""
    TOKENINFO_URL: str = "https://oauth2.googleapis.com/tokeninfo"

    # Literal "local" token for offline use; off unless explicitly enabled
    ALLOW_LOCAL_TOKEN: bool = False
    LOCAL_USER_EMAIL: str = "local@localhost"
    LOCAL_USER_NAME: str = "Local User"

    # Slack incoming webhook; empty disables delivery
    SLACK_WEBHOOK_URL: str = ""
    HTTP_TIMEOUT: float = 10.0

    # "Today" for overdue and digest calculations
    TIMEZONE: str = "America/New_York"

    SCHEDULER_ENABLED: bool = True
    DIGEST_HOUR: int = 17
    DIGEST_MINUTE: int = 0
    OVERDUE_SWEEP_HOUR: int = 9
    OVERDUE_SWEEP_MINUTE: int = 0

    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env"}


settings = Settings()
