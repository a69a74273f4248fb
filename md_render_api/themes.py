"""
主题 CSS 加载（按文件名懒加载 + 进程内缓存）
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# 主题显示名（顺序即 /themes 返回顺序）
THEMES = [
    {"name": "default", "label": "经典"},
    {"name": "grace", "label": "优雅"},
    {"name": "simple", "label": "简洁"},
]

BASE_CSS = "base.css"


def list_themes() -> list[dict]:
    """返回可用主题列表"""
    return [dict(theme) for theme in THEMES]


class ThemeLoader:
    """
    主题 CSS 缓存：{filename: css_content}

    主题文件是构建产物，进程生命周期内不会变化，因此缓存从不失效。
    读取失败时返回空字符串并记录 warning，不向调用方抛异常。
    """

    def __init__(self, theme_dir: Path):
        self.theme_dir = Path(theme_dir)
        self._cache: dict[str, str] = {}

    def load(self, filename: str) -> str:
        if filename in self._cache:
            return self._cache[filename]
        try:
            content = (self.theme_dir / filename).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("加载 CSS 失败: %s (%s)", filename, e)
            return ""
        self._cache[filename] = content
        return content

    def load_theme(self, theme_name: str = "default") -> tuple[str, str]:
        """返回 (base_css, theme_css)，两者都可能为空"""
        return self.load(BASE_CSS), self.load(f"{theme_name}.css")

    def cached(self) -> list[str]:
        return sorted(self._cache)
