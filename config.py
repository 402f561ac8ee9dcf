# config.py
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if not value:
        return default
    return int(value)


class Settings:
    def __init__(self):
        self.database_url = os.getenv("BUDGET_DATABASE_URL", "sqlite:///./budget.db")
        self.secret_key = os.getenv("BUDGET_SECRET_KEY", "your-secret-key")
        self.algorithm = os.getenv("BUDGET_JWT_ALGORITHM", "HS256")
        self.access_token_expire_minutes = _env_int(
            "BUDGET_ACCESS_TOKEN_EXPIRE_MINUTES", 30
        )
        self.scheduler_enabled = _env_bool("BUDGET_SCHEDULER_ENABLED", True)
        # Daily run time for the recurring expense job
        self.process_hour = _env_int("BUDGET_PROCESS_HOUR", 0)
        self.process_minute = _env_int("BUDGET_PROCESS_MINUTE", 0)
        self.log_level = os.getenv("BUDGET_LOG_LEVEL", "INFO")


settings = Settings()
