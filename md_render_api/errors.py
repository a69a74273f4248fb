"""
请求级错误类型：都是终态错误，不重试，直接以 {"error": message} 返回给调用方
"""

from typing import Optional


class RenderApiError(Exception):
    status_code = 400
    message = "failed to render markdown"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class OversizedBody(RenderApiError):
    """请求体超过 MAX_BODY_BYTES，读取中途终止"""
    message = "request body exceeds limit"


class InvalidJson(RenderApiError):
    message = "invalid JSON payload"


class InvalidMarkdownType(RenderApiError):
    message = "markdown must be a string"


class RenderFailure(RenderApiError):
    """渲染器 / 组装阶段的任何异常（不再细分）"""
    message = "failed to render markdown"


class NotFound(RenderApiError):
    status_code = 404
    message = "not found"
