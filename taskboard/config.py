# Task board: server configuration
# Override via taskboard.yaml, TASKBOARD_* environment variables, or CLI args.

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_PATH = Path("taskboard.yaml")

ENV_OVERRIDES = {
    "TASKBOARD_HOST": ("host", str),
    "TASKBOARD_PORT": ("port", int),
    "TASKBOARD_DATA": ("data_file", str),
    "TASKBOARD_LOG_LEVEL": ("log_level", str),
}


@dataclass
class BoardConfig:
    """Runtime configuration for the board server."""

    # Network
    host: str = "127.0.0.1"
    port: int = 3000

    # Storage
    data_file: str = "data/tasks.json"
    static_dir: str = "public"

    # Logging
    log_level: str = "INFO"

    # Live event stream
    keepalive_secs: float = 15.0
    subscriber_queue_size: int = 256

    def resolve_paths(self):
        """Expand ~ in file paths."""
        self.data_file = str(Path(self.data_file).expanduser())
        self.static_dir = str(Path(self.static_dir).expanduser())

    def apply_env(self, environ=None):
        """Apply TASKBOARD_* overrides from the environment."""
        environ = os.environ if environ is None else environ
        for var, (attr, cast) in ENV_OVERRIDES.items():
            raw = environ.get(var)
            if raw is None or raw.strip() == "":
                continue
            try:
                setattr(self, attr, cast(raw.strip()))
            except ValueError:
                logger.warning(f"Ignoring invalid {var}={raw!r}")

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults, then apply env."""
        cfg_path = Path(path) if path else CONFIG_PATH
        known = {f.name for f in fields(cls)}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except Exception as e:
                logger.warning(f"Could not read {cfg_path}: {e}; using defaults")
                cfg = cls()
        else:
            cfg = cls()
        cfg.apply_env(environ)
        cfg.resolve_paths()
        return cfg
