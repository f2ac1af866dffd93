"""Config loading: packaged defaults, an optional user YAML file, and .env secrets."""

import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

# Load .env from project root (parent of sketchstudio/), then the working directory
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")
load_dotenv(Path.cwd() / ".env")

CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"
CONFIG_ENV = "SKETCH_STUDIO_CONFIG"


def _read_yaml(path: Path) -> dict:
    data = yaml.safe_load(Path(path).expanduser().read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file '{path}' must contain a mapping.")
    return data


def load_config(path: str | None = None) -> dict:
    """Return packaged defaults overlaid with a user config file.

    The user file is `path` if given, else the file named by
    $SKETCH_STUDIO_CONFIG, else none.
    """
    config = _read_yaml(CONFIG_PATH)
    user_path = path or os.environ.get(CONFIG_ENV)
    if user_path:
        config.update(_read_yaml(Path(user_path)))
    return config


_config = load_config()


def get_config() -> dict:
    """Return the config loaded at import time."""
    return _config
