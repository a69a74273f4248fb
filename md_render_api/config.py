"""
服务配置：环境变量 + .env
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

PACKAGE_DIR = Path(__file__).parent
THEMES_DIR = PACKAGE_DIR / "themes"
TEMPLATES_DIR = PACKAGE_DIR / "templates"

DEFAULT_PORT = 8787
DEFAULT_MAX_BODY_BYTES = 1024 * 1024


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    theme_css_dir: Path = field(default=THEMES_DIR)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """从环境变量读取配置（启动时调用一次）"""
        load_dotenv()
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", DEFAULT_PORT),
            max_body_bytes=_int_env("MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
            theme_css_dir=Path(os.getenv("THEME_CSS_DIR") or THEMES_DIR),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
