"""
Markdown 渲染服务 - FastAPI 入口
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .errors import (
    InvalidJson,
    InvalidMarkdownType,
    NotFound,
    OversizedBody,
    RenderApiError,
    RenderFailure,
)
from .html_convert import build_full_html
from .middleware import AccessLogMiddleware, CorsMiddleware
from .models import RenderOptions, StyleOptions
from .renderer import MarkdownRenderer
from .themes import THEMES, ThemeLoader, list_themes

logger = logging.getLogger(__name__)

router = APIRouter()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期"""
    settings: Settings = app.state.settings

    # 预热主题缓存（缺失的文件只记 warning）
    for theme in THEMES:
        app.state.theme_loader.load_theme(theme["name"])

    logger.info("listening on http://%s:%d", settings.host, settings.port)
    logger.info("endpoints: GET /health, GET /themes, POST /render")
    yield


async def read_json(request: Request, max_body_bytes: int) -> Any:
    """
    分块读取请求体并解析 JSON。

    超过 max_body_bytes 立即中止读取；空请求体视为 {}。
    嵌套过深导致的 RecursionError 与语法错误同样按 InvalidJson 处理。
    """
    size = 0
    chunks = []
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_body_bytes:
            raise OversizedBody()
        chunks.append(chunk)

    body = b"".join(chunks)
    if not body:
        return {}
    try:
        return json.loads(body)
    except (ValueError, RecursionError):
        raise InvalidJson() from None


# ========== 路由 ==========

@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/themes")
async def themes():
    """获取可用主题列表"""
    return {"themes": list_themes()}


@router.post("/render")
async def render_markdown(request: Request):
    """Markdown → HTML 片段，或带样式的完整 HTML 文档"""
    settings: Settings = request.app.state.settings
    payload = await read_json(request, settings.max_body_bytes)
    if not isinstance(payload, dict):
        payload = {}

    md_content = payload.get("markdown")
    if not isinstance(md_content, str):
        raise InvalidMarkdownType()

    include_styles = bool(payload.get("includeStyles", False))
    renderer: MarkdownRenderer = request.app.state.renderer

    # reset → render → 组装之间没有 await，其他请求无法插入
    try:
        render_options = RenderOptions.from_payload(payload.get("options"))
        style_options = StyleOptions.from_payload(payload.get("styleOptions"))
        renderer.reset(render_options)
        content = renderer.render(md_content)
        html = build_full_html(
            content, style_options, include_styles, request.app.state.theme_loader
        )
    except Exception as e:
        logger.exception("渲染失败: %s", e)
        raise RenderFailure() from e

    if include_styles and "text/html" in request.headers.get("accept", ""):
        return HTMLResponse(html)
    return {"html": html}


# ========== 错误处理 ==========

async def handle_api_error(request: Request, exc: RenderApiError):
    headers = {"Connection": "close"} if isinstance(exc, OversizedBody) else None
    return JSONResponse(
        {"error": exc.message}, status_code=exc.status_code, headers=headers
    )


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    # 未匹配的路径和方法统一按 404 处理
    if exc.status_code in (404, 405):
        return await handle_api_error(request, NotFound())
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="Markdown 渲染服务",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.state.theme_loader = ThemeLoader(settings.theme_css_dir)
    app.state.renderer = MarkdownRenderer()

    app.include_router(router)
    app.add_exception_handler(RenderApiError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)

    # 后添加的在外层：访问日志也要覆盖 OPTIONS
    app.add_middleware(CorsMiddleware)
    app.add_middleware(AccessLogMiddleware)
    return app


def run():
    """命令行入口：md-render-api"""
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        access_log=False,
        log_config=None,
    )


if __name__ == "__main__":
    run()
