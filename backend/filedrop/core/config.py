import os


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime configuration read from the environment.

    Keyword arguments override the environment, which is how tests build an
    isolated application.
    """

    def __init__(self, **overrides):
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./filedrop.db")
        self.UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "3000"))
        self.MAX_REQUEST_BODY: int = int(os.getenv("MAX_REQUEST_BODY", str(100 * 1024 * 1024)))
        self.PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")
        self.ADMIN_USERNAME: str = os.getenv("ADMIN_USERNAME", "admin")
        self.ADMIN_PASSWORD: str = os.getenv("ADMIN_PASSWORD", "")
        self.MIN_PASSWORD_LENGTH: int = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.SQL_ECHO: bool = _env_bool("SQL_ECHO")
        self.CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "0"))
        self.CLEANUP_MIN_AGE_SECONDS: int = int(os.getenv("CLEANUP_MIN_AGE_SECONDS", "3600"))
        self.METRICS_ENABLED: bool = _env_bool("METRICS_ENABLED", "true")

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

        self.DATABASE_URL = normalize_database_url(self.DATABASE_URL)


def normalize_database_url(url: str) -> str:
    """Accept plain ``sqlite:`` URLs and paths and point them at the aiosqlite driver."""
    if url.startswith("sqlite+aiosqlite:"):
        return url
    if url.startswith("sqlite:"):
        rest = url[len("sqlite:"):]
        if not rest.startswith("//"):
            rest = "///" + rest
        return "sqlite+aiosqlite:" + rest
    if "://" not in url:
        return f"sqlite+aiosqlite:///{url}"
    return url


settings = Settings()
