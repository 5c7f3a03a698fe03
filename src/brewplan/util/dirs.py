import os
import re
from pathlib import Path

DEFAULT_HOME = os.environ.get("BP_HOME_DIR", (Path.home() / ".brewplan").as_posix())
DEFAULT_DATA_PATH = (Path(DEFAULT_HOME) / "plans.yaml").as_posix()
DEFAULT_ENV_PATH = (Path(DEFAULT_HOME) / "config.env").as_posix()

DEFAULTS: dict[str, str] = {
    "DATA_PATH": DEFAULT_DATA_PATH,
    "TIMEZONE": "UTC",
    "LOG_LEVEL": "INFO",
}


def ensure_dirs() -> None:
    _path = Path(DEFAULT_HOME)
    _path.mkdir(parents=True, exist_ok=True)


def load_env(path: str = DEFAULT_ENV_PATH) -> dict[str, str]:
    """Read KEY=VALUE lines from config.env.

    Every key in DEFAULTS is always present. A BP_<KEY> environment variable
    overrides the file.
    """
    env: dict[str, str] = {}
    _path = Path(path)
    if _path.exists():
        with _path.open(encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                m = re.match(r"([^=]+)=(.*)", line)
                if m:
                    key = m.group(1).strip()
                    val = m.group(2).strip()
                    env[key] = val

    # OS environment wins over config.env, then the built-in defaults apply
    for key, default in DEFAULTS.items():
        env[key] = os.environ.get(f"BP_{key}", env.get(key, default))
    return env
