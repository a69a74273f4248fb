"""
请求模型：样式选项 / 渲染选项
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PRIMARY_COLOR = "#1a73e8"
DEFAULT_FONT_SIZE = "15px"
DEFAULT_FONT_FAMILY = (
    '-apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, "Helvetica Neue", sans-serif'
)
DEFAULT_LINE_HEIGHT = "1.75"

# 主题名会拼成文件名，只允许字母数字、下划线和连字符
THEME_NAME_PATTERN = r"^[\w-]+$"


def _drop_nulls(data: Any) -> dict:
    """非对象按空对象处理；值为 null 的字段回退到默认值"""
    if not isinstance(data, dict):
        return {}
    return {k: v for k, v in data.items() if v is not None}


class StyleOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    theme: str = Field("default", pattern=THEME_NAME_PATTERN)
    primary_color: str = Field(DEFAULT_PRIMARY_COLOR, alias="primaryColor")
    font_size: str = Field(DEFAULT_FONT_SIZE, alias="fontSize")
    font_family: str = Field(DEFAULT_FONT_FAMILY, alias="fontFamily")
    line_height: str = Field(DEFAULT_LINE_HEIGHT, alias="lineHeight")
    code_theme: Optional[str] = Field(None, alias="codeTheme")
    wechat_compatible: bool = Field(False, alias="wechatCompatible")
    inline_styles: bool = Field(False, alias="inlineStyles")

    @classmethod
    def from_payload(cls, data: Any) -> "StyleOptions":
        return cls.model_validate(_drop_nulls(data))


class RenderOptions(BaseModel):
    """原样转交给 Markdown 渲染器的选项"""
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    legend: str = "none"
    cite_status: bool = Field(False, alias="citeStatus")
    count_status: bool = Field(False, alias="countStatus")
    is_mac_code_block: bool = Field(False, alias="isMacCodeBlock")
    is_show_line_number: bool = Field(False, alias="isShowLineNumber")

    @classmethod
    def from_payload(cls, data: Any) -> "RenderOptions":
        return cls.model_validate(_drop_nulls(data))
