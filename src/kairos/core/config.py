"""Configuration loading for Kairos.

Settings live in ``<root>/.kairos/config.json``. The root is ``$KAIROS_HOME``
when set, otherwise the nearest directory above the working directory that
contains ``.kairos``, otherwise the home directory.
"""

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from kairos.core.errors import ConfigError

CONFIG_DIR_NAME = ".kairos"
CONFIG_FILE_NAME = "config.json"

# Normalized key -> field name. Keys are compared lower-cased with
# everything but letters and digits stripped.
KEY_ALIASES = {
    "databasepath": "database_path",
    "database": "database_path",
    "db": "database_path",
    "weeklygoal": "weekly_goal",
    "weeklyhours": "weekly_goal",
    "timezone": "timezone",
    "tz": "timezone",
    "defaultbreakminutes": "default_break_minutes",
    "breakminutes": "default_break_minutes",
    "reducedbreakweekday": "reduced_break_weekday",
    "reducedbreakminutes": "reduced_break_minutes",
    "fridaybreakminutes": "reduced_break_minutes",
    "autoarchive": "auto_archive",
    "archivewaitseconds": "archive_wait_seconds",
}


def normalize_key(key: str) -> str:
    return re.sub(r"[^a-z0-9]", "", key.strip().lower())


class KairosConfig(BaseModel):
    """User settings for the ledger, work rules and archival."""

    root: Path
    database_path: Optional[Path] = None
    weekly_goal: float = Field(default=38.5, gt=0)
    timezone: str = "local"
    default_break_minutes: int = Field(default=30, ge=0)
    reduced_break_weekday: int = Field(default=4, ge=0, le=6)
    reduced_break_minutes: int = Field(default=0, ge=0)
    auto_archive: bool = True
    archive_wait_seconds: float = Field(default=2.0, ge=0)

    @field_validator("timezone")
    @classmethod
    def _strip_timezone(cls, value: str) -> str:
        return value.strip() or "local"

    def model_post_init(self, __context: Any) -> None:
        if self.database_path is None:
            self.database_path = self.data_dir / "data.db"
            return
        path = Path(os.path.expanduser(str(self.database_path)))
        if not path.is_absolute():
            path = self.root / path
        self.database_path = path

    @property
    def data_dir(self) -> Path:
        return self.root / CONFIG_DIR_NAME

    @property
    def config_file(self) -> Path:
        return self.data_dir / CONFIG_FILE_NAME

    @property
    def history_path(self) -> Path:
        return self.database_path.parent / "history"

    def to_file_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"root"})


def find_root(start: Optional[Path] = None) -> Path:
    """Locate the directory holding ``.kairos``."""
    env_home = os.environ.get("KAIROS_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()

    current_dir = Path(start or Path.cwd()).resolve()
    for parent in [current_dir] + list(current_dir.parents):
        if (parent / CONFIG_DIR_NAME).is_dir():
            return parent
    return Path.home()


def _apply_aliases(raw: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for key, value in raw.items():
        field = KEY_ALIASES.get(normalize_key(str(key)))
        if field is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                continue
        values[field] = value
    return values


def load_config(root: Optional[Path] = None) -> KairosConfig:
    """Read the config file under `root`, falling back to defaults."""
    root = Path(root) if root is not None else find_root()
    config_file = root / CONFIG_DIR_NAME / CONFIG_FILE_NAME

    raw: Dict[str, Any] = {}
    if config_file.exists():
        try:
            raw = json.loads(config_file.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read {config_file}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{config_file} must contain a JSON object")

    try:
        return KairosConfig(root=root, **_apply_aliases(raw))
    except ValidationError as e:
        raise ConfigError(f"invalid configuration in {config_file}: {e}") from e


def save_config(config: KairosConfig) -> Path:
    config.data_dir.mkdir(parents=True, exist_ok=True)
    config.config_file.write_text(json.dumps(config.to_file_dict(), indent=2))
    return config.config_file
