import os
import yaml

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

CONFIG_ENV_VAR = "CRICKET_SCORER_CONFIG_PATH"


def config_path():
    """config/config.yaml, unless CRICKET_SCORER_CONFIG_PATH points elsewhere."""
    return os.environ.get(CONFIG_ENV_VAR) or os.path.join(PROJECT_ROOT, "config", "config.yaml")


def load_config(path=None):
    path = path or config_path()
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
