import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database (tenant, usage and API-key records are read from here)
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Subscription management landing page (route guard redirect target)
    SUBSCRIPTION_MANAGEMENT_PATH: str = "/dashboard/settings"
    SUBSCRIPTION_SECTION: str = "subscription"
    DEFAULT_SECTION: str = "general"

    # Trials
    TRIAL_PERIOD_DAYS: int = 30

    # External API keys
    API_KEY_PREFIX: str = "cgk_"

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("clinicgate")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if not cfg.SUBSCRIPTION_MANAGEMENT_PATH.startswith("/"):
        message = "SUBSCRIPTION_MANAGEMENT_PATH must be an absolute path"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
