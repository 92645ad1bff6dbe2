from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "VehiScan API"

    SECRET_KEY: str = "CHANGE_ME_SUPER_SECRET"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    DB_HOST: str = "db"
    DB_PORT: int = 5432
    DB_NAME: str = "vehiscan_db"
    DB_USER: str = "vehiscan_user"
    DB_PASSWORD: str = "vehiscan_password"
    # full SQLAlchemy URL, wins over the DB_* parts when set
    DB_URL: str | None = None

    # scan flow: 10 scans per hour per user
    SCAN_MAX_ATTEMPTS: int = 10
    SCAN_WINDOW_MS: int = 60 * 60 * 1000

    # login flow: 3 failures lock the identity for 10 minutes
    LOCKOUT_MAX_ATTEMPTS: int = 3
    LOCKOUT_DURATION_MS: int = 10 * 60 * 1000

    RATE_LIMIT_FAIL_CLOSED: bool = False

    # comma-separated list of e-mails that get the admin flag on sign-up
    ADMIN_EMAILS: str = ""

    LOG_LEVEL: str = "INFO"

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    def get_admin_emails(self) -> set[str]:
        return {
            email.strip().lower()
            for email in self.ADMIN_EMAILS.split(",")
            if email.strip()
        }
