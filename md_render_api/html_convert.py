"""
渲染结果 → 带作用域样式的完整 HTML / 微信兼容 HTML

处理顺序（build_full_html）：
1. 生成 CSS 变量块 + 基础 CSS + 主题 CSS + 容器样式 + 代码高亮样式
2. 给所有规则加 .md-container 作用域
3. 套进页面模板
4. 微信兼容模式：把 var(--xxx) 替换成实际值
5. 内联模式：css-inline 内联 → 修正 img / tspan → 再做一次变量替换
"""

import re

import css_inline
from jinja2 import Environment, FileSystemLoader

from .config import TEMPLATES_DIR
from .models import StyleOptions
from .themes import ThemeLoader

SCOPE = ".md-container"

_templates = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=False,
    keep_trailing_newline=True,
)

CONTAINER_CSS = """
.md-container {
  max-width: 750px;
  margin: 0 auto;
  padding: 20px;
  font-family: var(--md-font-family);
  font-size: var(--md-font-size);
  line-height: var(--md-line-height);
  color: hsl(var(--foreground));
}
.md-container > section > :first-child {
  margin-top: 0 !important;
}
"""

# Highlight.js 基础配色
HIGHLIGHT_CSS = """
.hljs { background: #1e1e1e; color: #d4d4d4; }
.hljs-keyword { color: #569cd6; }
.hljs-string { color: #ce9178; }
.hljs-number { color: #b5cea8; }
.hljs-comment { color: #6a9955; }
.hljs-function { color: #dcdcaa; }
.hljs-class { color: #4ec9b0; }
.hljs-variable { color: #9cdcfe; }
.hljs-operator { color: #d4d4d4; }
.hljs-punctuation { color: #d4d4d4; }
.hljs-property { color: #9cdcfe; }
.hljs-attr { color: #9cdcfe; }
.hljs-selector-class { color: #d7ba7d; }
.hljs-selector-id { color: #d7ba7d; }
.hljs-tag { color: #569cd6; }
.hljs-name { color: #569cd6; }
.hljs-attribute { color: #9cdcfe; }
.hljs-built_in { color: #4ec9b0; }
.hljs-type { color: #4ec9b0; }
.hljs-params { color: #9cdcfe; }
.hljs-title { color: #dcdcaa; }
.hljs-title.function_ { color: #dcdcaa; }
.hljs-title.class_ { color: #4ec9b0; }
.hljs-meta { color: #c586c0; }
.hljs-literal { color: #569cd6; }
.hljs-symbol { color: #b5cea8; }
.hljs-regexp { color: #d16969; }
.hljs-deletion { color: #ce9178; background: rgba(206, 145, 120, 0.1); }
.hljs-addition { color: #b5cea8; background: rgba(181, 206, 168, 0.1); }
"""

# 微信里 mermaid 等图表的文字会继承不可见的颜色
TSPAN_STYLE = "fill: #333333 !important; color: #333333 !important; stroke: none !important;"

FOREGROUND_HEX = "#3f3f3f"
BLOCKQUOTE_BACKGROUND = "#f7f7f7"
WECHAT_LINE_HEIGHT = "1.75"


def generate_css_variables(style: StyleOptions) -> str:
    """样式选项 → :root 自定义属性块"""
    return f"""
:root {{
  --md-primary-color: {style.primary_color};
  --md-font-size: {style.font_size};
  --md-font-family: {style.font_family};
  --md-line-height: {style.line_height};
  --foreground: 0 0% 25%;
  --blockquote-background: {BLOCKQUOTE_BACKGROUND};
}}
"""


_RULE_RE = re.compile(r'([^{}]+)\{([^{}]*)\}')


def wrap_with_scope(css: str, scope: str = SCOPE) -> str:
    """
    给每条规则的选择器加上作用域前缀。

    - @ 规则、:root 原样保留（自定义属性必须保持全局）
    - 已经以 scope 开头的选择器不再重复加前缀
    - 声明块内容原样保留

    纯文本替换而不是 CSS 解析：不支持嵌套规则（@media 里的规则会被加前缀，
    @keyframes 的 from/to 也会），注释和字符串里的花括号可能切错。
    """
    scope_re = re.compile(re.escape(scope) + r'(?![\w-])')

    def replace_rule(m: re.Match) -> str:
        raw_selectors = m.group(1)
        selectors = raw_selectors.strip()
        if selectors.startswith('@') or selectors.startswith(':root'):
            return m.group(0)

        leading = raw_selectors[:len(raw_selectors) - len(raw_selectors.lstrip())]
        wrapped = []
        for selector in selectors.split(','):
            selector = selector.strip()
            if not selector:
                continue
            if scope_re.match(selector):
                wrapped.append(selector)
            else:
                wrapped.append(f"{scope} {selector}")
        return f"{leading}{', '.join(wrapped)} {{{m.group(2)}}}"

    return _RULE_RE.sub(replace_rule, css)


def _parse_leading_number(value: str):
    m = re.match(r'\s*([+-]?(?:\d+\.?\d*|\.\d+))', value)
    return float(m.group(1)) if m else None


def _format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def replace_wechat_variables(html: str, style: StyleOptions) -> str:
    """
    微信不支持 CSS 变量：按固定顺序把 var(--xxx) 换成字面值。

    注意：
    - line-height 固定替换为 1.75，不读取配置值
    - hsl(var(--foreground)) 必须先于 var(--foreground) 处理
    - calc() 只识别 calc(15px * N) 这种写法，按实际字号重新计算
    """
    html = (
        html
        .replace('var(--md-primary-color)', style.primary_color)
        .replace('var(--md-font-size)', style.font_size)
        .replace('var(--md-font-family)', style.font_family)
        .replace('var(--md-line-height)', WECHAT_LINE_HEIGHT)
        .replace('var(--blockquote-background)', BLOCKQUOTE_BACKGROUND)
        .replace('hsl(var(--foreground))', FOREGROUND_HEX)
        .replace('var(--foreground)', '0 0% 25%')
        .replace('hsl(0 0% 25%)', FOREGROUND_HEX)
    )

    # 变量已全部展开，:root 声明不再需要
    html = re.sub(r':root\s*\{[^}]*\}', '', html)

    base = _parse_leading_number(style.font_size)
    if base is None:
        return html

    def replace_calc(m: re.Match) -> str:
        return f"{_format_number(base * float(m.group(1)))}px"

    return re.sub(r'calc\(15px \* (\d+(?:\.\d+)?|\.\d+)\)', replace_calc, html)


_PSEUDO_RE = re.compile(r'::before|::after|:nth-child|:hover|:focus')


def _extract_pseudo_rules(css: str) -> str:
    """css-inline 写不进 style 属性的规则；@ 规则和空规则不收"""
    rules = []
    for m in _RULE_RE.finditer(css):
        selectors = m.group(1).strip()
        body = m.group(2).strip()
        if not body or selectors.startswith('@') or not _PSEUDO_RE.search(selectors):
            continue
        rules.append(f"{selectors} {{ {body} }}")
    return '\n'.join(rules)


def apply_inline_styles(html: str) -> str:
    """
    css-inline 把 <style> 里的规则写进各元素的 style 属性。

    伪元素规则无法内联，先提取出来，内联后重新放回 <head>。
    CSS 变量不在这里处理（见 replace_wechat_variables）。
    """
    css = '\n'.join(re.findall(r'<style[^>]*>(.*?)</style>', html, re.DOTALL))
    pseudo_css = _extract_pseudo_rules(css)

    inliner = css_inline.CSSInliner(
        inline_style_tags=True,
        keep_style_tags=False,
        keep_link_tags=False,
        load_remote_stylesheets=False,
    )
    inlined = inliner.inline(html)

    if pseudo_css.strip():
        style_tag = f'<style>\n{pseudo_css}\n</style>'
        if '</head>' in inlined:
            inlined = inlined.replace('</head>', f'{style_tag}\n</head>', 1)
        else:
            inlined = f'{style_tag}\n{inlined}'
    return inlined


def _move_dimension_to_style(html: str, attr: str) -> str:
    """<img width="N"> → <img style="width: Npx; ...">"""
    attr_re = re.compile(rf'\s{attr}="(\d+)"')

    def replace_img(m: re.Match) -> str:
        tag = m.group(0)
        dim = attr_re.search(tag)
        if not dim:
            return tag
        rule = f"{attr}: {dim.group(1)}px;"
        tag = tag[:dim.start()] + tag[dim.end():]
        if re.search(r'\sstyle="', tag):
            return re.sub(r'(\sstyle=")', rf'\g<1>{rule} ', tag, count=1)
        return re.sub(r'\s*(/?>)$', rf' style="{rule}"\1', tag, count=1)

    return re.sub(r'<img\b[^>]*>', replace_img, html)


def _force_tspan_color(html: str) -> str:
    def replace_tspan(m: re.Match) -> str:
        tag = m.group(0)
        style = re.search(r'\sstyle="([^"]*)"', tag)
        if style:
            existing = style.group(1).rstrip()
            if existing and not existing.endswith(';'):
                existing += ';'
            merged = f"{existing} {TSPAN_STYLE}".strip()
            return tag[:style.start(1)] + merged + tag[style.end(1):]
        return re.sub(r'\s*(/?>)$', rf' style="{TSPAN_STYLE}"\1', tag, count=1)

    return re.sub(r'<tspan\b[^>]*>', replace_tspan, html)


def fix_wechat_html(html: str) -> str:
    """
    针对微信编辑器的结构修正（按顺序）：
    1. img 的 width 属性 → style 里的 width: Npx;
    2. img 的 height 属性 → 同上
    3. 图表 <tspan> 强制使用灰色文字

    只处理 Markdown 渲染器的输出，不是通用 DOM 变换；属性写法不同的 HTML 可能匹配不到。
    """
    html = _move_dimension_to_style(html, "width")
    html = _move_dimension_to_style(html, "height")
    return _force_tspan_color(html)


def build_full_html(
    content: str,
    style: StyleOptions,
    include_styles: bool,
    loader: ThemeLoader,
) -> str:
    """
    组装完整 HTML 文档。

    include_styles 为 False 时原样返回渲染片段（API 调用方只要 HTML 片段）。
    """
    if not include_styles:
        return content

    base_css, theme_css = loader.load_theme(style.theme)
    css_variables = generate_css_variables(style)

    full_css = f"{css_variables}\n{base_css}\n{theme_css}"
    full_css += CONTAINER_CSS
    full_css += HIGHLIGHT_CSS

    scoped_css = wrap_with_scope(full_css, SCOPE)

    html = _templates.get_template("page.html").render(css=scoped_css, content=content)

    if style.wechat_compatible:
        html = replace_wechat_variables(html, style)

    if style.inline_styles:
        html = apply_inline_styles(html)
        html = fix_wechat_html(html)
        # 内联后可能重新带出变量写法，再清理一遍
        if style.wechat_compatible:
            html = replace_wechat_variables(html, style)

    return html
