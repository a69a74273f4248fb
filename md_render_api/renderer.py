"""
Markdown → HTML 片段

复用同一个 markdown.Markdown 实例，每次请求前 reset(options)。
实例不保存跨请求的状态：reset() 同时清掉脚注等解析器内部状态。
"""

import math
import re
from typing import Optional

import markdown

from .models import RenderOptions

EXTENSIONS = ['fenced_code', 'tables', 'nl2br', 'footnotes', 'sane_lists']

# 图片说明：按顺序取第一个非空属性
LEGEND_ATTRS = {
    "alt": ("alt",),
    "title": ("title",),
    "alt-title": ("alt", "title"),
    "title-alt": ("title", "alt"),
}

ALERT_TITLES = {
    "note": "Note",
    "tip": "Tip",
    "important": "Important",
    "warning": "Warning",
    "caution": "Caution",
}

MAC_SIGN = (
    '<span class="mac-sign" style="padding: 10px 14px 0;">'
    '<svg xmlns="http://www.w3.org/2000/svg" version="1.1" x="0px" y="0px" '
    'width="45px" height="13px" viewBox="0 0 450 130">'
    '<ellipse cx="50" cy="65" rx="50" ry="52" stroke="rgb(220,60,54)" stroke-width="2" fill="rgb(237,108,96)" />'
    '<ellipse cx="225" cy="65" rx="50" ry="52" stroke="rgb(218,151,33)" stroke-width="2" fill="rgb(247,193,81)" />'
    '<ellipse cx="400" cy="65" rx="50" ry="52" stroke="rgb(27,161,37)" stroke-width="2" fill="rgb(100,200,86)" />'
    '</svg></span>'
)

# 微信文章链接在公众号内可以直接点开，不转成引用
WECHAT_ARTICLE_PREFIX = "https://mp.weixin.qq.com"

WORDS_PER_MINUTE = 200

_ALERT_RE = re.compile(
    r'<blockquote>\s*<p>\[!(NOTE|TIP|IMPORTANT|WARNING|CAUTION)\]\s*(?:<br\s*/?>|</p>\s*<p>)?\s*',
    re.IGNORECASE,
)
_IMG_RE = re.compile(r'<img\b[^>]*>')
_ATTR_RE = re.compile(r'([\w-]+)="([^"]*)"')
_CODE_BLOCK_RE = re.compile(r'<pre><code(?P<attrs>[^>]*)>(?P<code>.*?)</code></pre>', re.DOTALL)
_LINK_RE = re.compile(r'<a href="(?P<href>https?://[^"]+)"[^>]*>(?P<text>.*?)</a>', re.DOTALL)


def reading_stats(md_content: str) -> str:
    """字数统计 + 预计阅读时间（中文按字、英文按词计）"""
    cjk = len(re.findall(r'[一-鿿]', md_content))
    words = len(re.findall(r'[A-Za-z0-9_]+', md_content))
    total = cjk + words
    minutes = max(1, math.ceil(total / WORDS_PER_MINUTE))
    return (
        '<blockquote class="md-blockquote">'
        f'<p>字数 {total}，阅读大约需 {minutes} 分钟</p>'
        '</blockquote>\n'
    )


class MarkdownRenderer:

    def __init__(self, options: Optional[RenderOptions] = None):
        self._md = markdown.Markdown(extensions=EXTENSIONS)
        self.options = options or RenderOptions()

    def reset(self, options: Optional[RenderOptions] = None):
        """切换渲染选项并清空上一次渲染遗留的解析状态"""
        self.options = options or RenderOptions()
        self._md.reset()

    def render(self, md_content: str) -> str:
        html = self._md.convert(md_content)
        html = self._apply_alerts(html)
        html = self._apply_legend(html)
        html = self._decorate_code_blocks(html)
        if self.options.cite_status:
            html = self._apply_citations(html)
        if self.options.count_status:
            html = reading_stats(md_content) + html
        return f'<section class="container">\n{html}\n</section>'

    def _apply_alerts(self, html: str) -> str:
        """GitHub 风格提示块：> [!NOTE] ..."""
        def replace_alert(m: re.Match) -> str:
            kind = m.group(1).lower()
            return (
                f'<blockquote class="markdown-alert markdown-alert-{kind}">\n'
                f'<p class="markdown-alert-title">{ALERT_TITLES[kind]}</p>\n<p>'
            )

        return _ALERT_RE.sub(replace_alert, html)

    def _apply_legend(self, html: str) -> str:
        keys = LEGEND_ATTRS.get(self.options.legend)
        if not keys:
            return html

        def replace_img(m: re.Match) -> str:
            attrs = dict(_ATTR_RE.findall(m.group(0)))
            caption = next((attrs[k] for k in keys if attrs.get(k)), "")
            if not caption:
                return m.group(0)
            return f'<figure>{m.group(0)}<figcaption>{caption}</figcaption></figure>'

        return _IMG_RE.sub(replace_img, html)

    def _decorate_code_blocks(self, html: str) -> str:
        def replace_code(m: re.Match) -> str:
            code = m.group("code")
            if self.options.is_show_line_number:
                lines = code.rstrip("\n").split("\n")
                code = "\n".join(
                    f'<span class="line-number">{i}</span>{line}'
                    for i, line in enumerate(lines, start=1)
                ) + "\n"
            mac = MAC_SIGN if self.options.is_mac_code_block else ""
            return f'<pre class="hljs code__pre">{mac}<code{m.group("attrs")}>{code}</code></pre>'

        return _CODE_BLOCK_RE.sub(replace_code, html)

    def _apply_citations(self, html: str) -> str:
        """
        外链 → 文字 + 角标，文末追加“引用链接”列表。

        微信正文不允许外链，同一 URL 只编号一次。
        """
        citations: dict[str, tuple[int, str]] = {}

        def replace_link(m: re.Match) -> str:
            href = m.group("href")
            text = m.group("text")
            if href.startswith(WECHAT_ARTICLE_PREFIX):
                return m.group(0)
            if href not in citations:
                citations[href] = (len(citations) + 1, text)
            index = citations[href][0]
            return f'<span class="link">{text}</span><sup>[{index}]</sup>'

        html = _LINK_RE.sub(replace_link, html)
        if not citations:
            return html

        items = "\n".join(
            f'<code>[{index}]</code> <span>{text}: <i>{href}</i></span><br />'
            for href, (index, text) in citations.items()
        )
        return f'{html}\n<h4 class="cite-title">引用链接</h4>\n<p class="footnotes">\n{items}\n</p>'
