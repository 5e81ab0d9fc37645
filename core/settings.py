from __future__ import annotations
import os
import yaml
from pathlib import Path
from pydantic import BaseModel

DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[1] / "config" / "settings.yaml"

class AppConfig(BaseModel):
    name: str = "Staff Directory"
    environment: str = "development"
    log_level: str = "INFO"

class AuthConfig(BaseModel):
    session_timeout_seconds: int = 1800
    throttle_max_attempts: int = 5
    throttle_window_seconds: int = 900
    csrf_token_bytes: int = 32
    bcrypt_rounds: int = 12
    min_password_length: int = 6
    username_min_length: int = 3
    username_max_length: int = 50

class DBConfig(BaseModel):
    url: str = "sqlite:///data/staff_directory.db"

class Settings(BaseModel):
    app: AppConfig = AppConfig()
    auth: AuthConfig = AuthConfig()
    db: DBConfig = DBConfig()

def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML. STAFFDIR_SETTINGS overrides the default path; a missing file yields defaults."""
    path = Path(path or os.getenv("STAFFDIR_SETTINGS") or DEFAULT_SETTINGS_PATH)
    if not path.exists():
        return Settings()
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return Settings(
        app=AppConfig(**(data.get("app") or {})),
        auth=AuthConfig(**(data.get("auth") or {})),
        db=DBConfig(**(data.get("db") or {})),
    )
