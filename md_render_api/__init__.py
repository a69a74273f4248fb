"""
Markdown → 微信公众号兼容 HTML 渲染服务
"""

__version__ = "0.1.0"
