"""Spendwise settings, stored as TOML in ~/.config/spendwise.toml.

Layout of the file:

    base_dir = "~/data/spendwise"

    [database]
    data_dir = "~/data/spendwise/db"
    filename = "spendwise.db"
    timeout = 5.0

    [logging]
    level = "INFO"
    log_dir = "~/data/spendwise/logs"

    [ledger]
    seed_file = "/path/to/categories.json"   # optional

Anything left out falls back to the defaults below. The file is written with
the defaults on first run.
"""

from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import tomllib
import tomli_w

DEFAULT_DB_FILENAME = "spendwise.db"
DEFAULT_DB_TIMEOUT = 5.0
DEFAULT_LOG_LEVEL = "INFO"


def _default_base_dir() -> Path:
    return Path.home() / "data" / "spendwise"


@dataclass
class Config:
    """Where the ledger database and logs live, and how the store behaves."""

    base_dir: Path
    db_data_dir: Path
    db_filename: str
    log_level: str
    log_dir: Path
    db_timeout: float = DEFAULT_DB_TIMEOUT  # seconds to wait on a locked database
    seed_file: Optional[Path] = None  # categories loaded by `categories seed`

    @property
    def db_path(self) -> Path:
        return self.db_data_dir / self.db_filename

    @classmethod
    def default(cls) -> "Config":
        return cls.from_dict({})

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Build a Config from parsed TOML, filling gaps with defaults."""
        base_dir = Path(data.get("base_dir", _default_base_dir()))
        database = data.get("database", {})
        logging_section = data.get("logging", {})
        ledger = data.get("ledger", {})

        seed_file = ledger.get("seed_file")
        return cls(
            base_dir=base_dir,
            db_data_dir=Path(database.get("data_dir", base_dir / "db")),
            db_filename=database.get("filename", DEFAULT_DB_FILENAME),
            db_timeout=float(database.get("timeout", DEFAULT_DB_TIMEOUT)),
            log_level=logging_section.get("level", DEFAULT_LOG_LEVEL),
            log_dir=Path(logging_section.get("log_dir", base_dir / "logs")),
            seed_file=Path(seed_file) if seed_file else None,
        )

    def to_dict(self) -> dict:
        """The TOML document for this Config (TOML has no null, so an unset seed file is omitted)."""
        data = {
            "base_dir": str(self.base_dir),
            "database": {
                "data_dir": str(self.db_data_dir),
                "filename": self.db_filename,
                "timeout": self.db_timeout,
            },
            "logging": {
                "level": self.log_level,
                "log_dir": str(self.log_dir),
            },
        }
        if self.seed_file is not None:
            data["ledger"] = {"seed_file": str(self.seed_file)}
        return data


def get_config_path() -> Path:
    return Path.home() / ".config" / "spendwise.toml"


def get_migrations_dir() -> Path:
    """SQL migrations shipped with the code. Not configurable."""
    return Path(__file__).parent / "db" / "migrations"


def get_seed_dir() -> Path:
    """Seed data shipped with the code."""
    return Path(__file__).parent / "db" / "seed"


def load_config(config_path: Optional[Path] = None) -> Config:
    """Read the config file, creating it with defaults when it is missing.

    Args:
        config_path: Location of the TOML file; defaults to get_config_path().

    Returns:
        The loaded Config.
    """
    config_path = config_path or get_config_path()

    if not config_path.exists():
        config = Config.default()
        _write_config(config, config_path)
        return config

    with open(config_path, "rb") as f:
        return Config.from_dict(tomllib.load(f))


def _write_config(config: Config, config_path: Path) -> None:
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "wb") as f:
        tomli_w.dump(config.to_dict(), f)
