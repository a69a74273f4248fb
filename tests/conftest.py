import pytest
from fastapi.testclient import TestClient

from md_render_api.config import Settings
from md_render_api.main import create_app
from md_render_api.themes import ThemeLoader

BASE_CSS = """
p { color: hsl(var(--foreground)); margin: 1em 0; }
a { color: var(--md-primary-color); }
"""

DEFAULT_CSS = """
h1 {
  color: var(--md-primary-color);
  font-size: calc(15px * 1.2);
}
blockquote { background: var(--blockquote-background); }
"""

GRACE_CSS = """
h2 { color: #fff; background: var(--md-primary-color); }
"""


@pytest.fixture
def theme_dir(tmp_path):
    """最小主题目录：simple.css 故意缺失"""
    (tmp_path / "base.css").write_text(BASE_CSS, encoding="utf-8")
    (tmp_path / "default.css").write_text(DEFAULT_CSS, encoding="utf-8")
    (tmp_path / "grace.css").write_text(GRACE_CSS, encoding="utf-8")
    return tmp_path


@pytest.fixture
def loader(theme_dir):
    return ThemeLoader(theme_dir)


@pytest.fixture
def settings(theme_dir):
    return Settings(max_body_bytes=1024, theme_css_dir=theme_dir)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
