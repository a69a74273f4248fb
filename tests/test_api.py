"""
HTTP 接口测试用例。

运行测试：
    python -m pytest tests/test_api.py -v
"""

import logging

import pytest
from fastapi.testclient import TestClient

from md_render_api.config import Settings
from md_render_api.main import create_app


class TestRoutes:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_themes_fixed_list(self, client):
        resp = client.get("/themes")
        assert resp.status_code == 200
        assert resp.json() == {
            "themes": [
                {"name": "default", "label": "经典"},
                {"name": "grace", "label": "优雅"},
                {"name": "simple", "label": "简洁"},
            ]
        }
        assert client.get("/themes").json() == resp.json()

    @pytest.mark.parametrize("method,path", [
        ("GET", "/nope"),
        ("GET", "/render"),
        ("POST", "/health"),
        ("GET", "/docs"),
    ])
    def test_unmatched_is_404(self, client, method, path):
        resp = client.request(method, path)
        assert resp.status_code == 404
        assert resp.json() == {"error": "not found"}

    @pytest.mark.parametrize("path", ["/render", "/anything"])
    def test_options_preflight(self, client, path):
        resp = client.options(path)
        assert resp.status_code == 204
        assert resp.content == b""
        assert resp.headers["access-control-allow-origin"] == "*"
        assert resp.headers["access-control-allow-methods"] == "GET,POST,OPTIONS"
        assert resp.headers["access-control-allow-headers"] == "Content-Type"

    def test_cors_on_every_response(self, client):
        assert client.get("/health").headers["access-control-allow-origin"] == "*"
        assert client.get("/nope").headers["access-control-allow-origin"] == "*"
        resp = client.post("/render", json={"markdown": 1})
        assert resp.headers["access-control-allow-origin"] == "*"


class TestRender:

    def test_fragment(self, client):
        resp = client.post("/render", json={"markdown": "# 你好\n\n正文"})
        assert resp.status_code == 200
        html = resp.json()["html"]
        assert html.startswith('<section class="container">')
        assert "<h1>你好</h1>" in html
        assert "<!DOCTYPE html>" not in html

    def test_options_forwarded(self, client):
        resp = client.post("/render", json={
            "markdown": "[Py](https://python.org)",
            "options": {"citeStatus": True},
        })
        assert resp.status_code == 200
        assert "引用链接" in resp.json()["html"]

    def test_options_reset_between_requests(self, client):
        client.post("/render", json={"markdown": "x", "options": {"countStatus": True}})
        resp = client.post("/render", json={"markdown": "x"})
        assert "阅读大约需" not in resp.json()["html"]

    def test_include_styles_json(self, client):
        resp = client.post("/render", json={
            "markdown": "# 标题",
            "includeStyles": True,
            "styleOptions": {"primaryColor": "#ff0000"},
        })
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        html = resp.json()["html"]
        assert html.startswith("<!DOCTYPE html>")
        assert "--md-primary-color: #ff0000;" in html

    def test_include_styles_html_when_accepted(self, client):
        resp = client.post(
            "/render",
            json={"markdown": "# 标题", "includeStyles": True},
            headers={"Accept": "text/html,application/xhtml+xml"},
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "text/html; charset=utf-8"
        assert resp.text.startswith("<!DOCTYPE html>")

    def test_accept_html_without_styles_stays_json(self, client):
        resp = client.post("/render", json={"markdown": "a"}, headers={"Accept": "text/html"})
        assert resp.headers["content-type"].startswith("application/json")
        assert "html" in resp.json()

    def test_wechat_compatible(self, client):
        resp = client.post("/render", json={
            "markdown": "# 标题",
            "includeStyles": True,
            "styleOptions": {"wechatCompatible": True, "fontSize": "20px"},
        })
        html = resp.json()["html"]
        assert "var(--" not in html
        assert "font-size: 24px;" in html

    def test_null_style_options_use_defaults(self, client):
        resp = client.post("/render", json={
            "markdown": "a",
            "includeStyles": True,
            "styleOptions": {"primaryColor": None},
        })
        assert "--md-primary-color: #1a73e8;" in resp.json()["html"]

    def test_unknown_theme_degrades_to_base_css(self, client, caplog):
        """未知主题只缺主题 CSS，基础样式照常输出"""
        with caplog.at_level(logging.WARNING, logger="md_render_api.themes"):
            resp = client.post("/render", json={
                "markdown": "a",
                "includeStyles": True,
                "styleOptions": {"theme": "purple"},
            })
        assert resp.status_code == 200
        html = resp.json()["html"]
        assert ".md-container p {" in html
        assert "purple.css" in caplog.text

    def test_numeric_options_coerced_to_strings(self, client):
        resp = client.post("/render", json={
            "markdown": "![图](a.png)",
            "options": {"legend": 5},
            "includeStyles": True,
            "styleOptions": {"fontSize": 16, "lineHeight": 2},
        })
        assert resp.status_code == 200
        html = resp.json()["html"]
        assert "--md-font-size: 16;" in html
        assert "--md-line-height: 2;" in html
        assert "<figure>" not in html


class TestRenderErrors:

    @pytest.mark.parametrize("payload", [
        {"markdown": 42},
        {"markdown": None},
        {},
        [1, 2],
        "text",
    ])
    def test_markdown_must_be_string(self, client, payload):
        resp = client.post("/render", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {"error": "markdown must be a string"}

    def test_empty_body(self, client):
        resp = client.post("/render", content=b"")
        assert resp.status_code == 400
        assert resp.json() == {"error": "markdown must be a string"}

    def test_invalid_json(self, client):
        resp = client.post("/render", content=b"{not json")
        assert resp.status_code == 400
        assert resp.json() == {"error": "invalid JSON payload"}

    def test_oversized_body(self, client):
        body = b'{"markdown": "' + b"x" * 2048 + b'"}'
        resp = client.post("/render", content=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "request body exceeds limit"}
        assert resp.headers["connection"] == "close"

    def test_deeply_nested_json(self, theme_dir):
        """嵌套过深（仍在字节上限内）按非法 JSON 处理，带 CORS 头"""
        app = create_app(Settings(max_body_bytes=1024 * 1024, theme_css_dir=theme_dir))
        depth = 100000
        body = b'{"markdown": "a", "x": ' + b"[" * depth + b"]" * depth + b"}"
        with TestClient(app) as c:
            resp = c.post("/render", content=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "invalid JSON payload"}
        assert resp.headers["access-control-allow-origin"] == "*"

    @pytest.mark.parametrize("theme", ["../../etc/passwd", "a/b", "grace.css"])
    def test_unsafe_theme_name_is_render_failure(self, client, theme):
        resp = client.post("/render", json={
            "markdown": "a",
            "includeStyles": True,
            "styleOptions": {"theme": theme},
        })
        assert resp.status_code == 400
        assert resp.json() == {"error": "failed to render markdown"}

    def test_renderer_exception_is_not_leaked(self, app, client, monkeypatch):
        def boom(md_content):
            raise RuntimeError("internal detail")

        monkeypatch.setattr(app.state.renderer, "render", boom)
        resp = client.post("/render", json={"markdown": "a"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "failed to render markdown"}


class TestAccessLog:

    def test_one_line_per_request(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="md_render_api.access"):
            client.post("/render", content=b'{"markdown": "hi"}')
        lines = [r.getMessage() for r in caplog.records if r.name == "md_render_api.access"]
        assert len(lines) == 1
        assert lines[0].startswith("POST /render 200 ")
        assert "req=18B" in lines[0]
        assert "ms req=" in lines[0]

    def test_logs_errors_and_preflight(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="md_render_api.access"):
            client.options("/render")
            client.get("/nope")
        lines = [r.getMessage() for r in caplog.records if r.name == "md_render_api.access"]
        assert lines[0].startswith("OPTIONS /render 204 ")
        assert lines[1].startswith("GET /nope 404 ")
