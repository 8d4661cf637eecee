"""Jinja2 environment, Markdown rendering and display formatting."""

import html
import re
from datetime import datetime

from jinja2 import Environment, PackageLoader
import markdown
from pygments import highlight
from pygments.lexers import get_lexer_by_name, TextLexer
from pygments.formatters import HtmlFormatter
from pygments.util import ClassNotFound


def format_timestamp(ts):
    """Format epoch milliseconds as a local date and time."""
    return datetime.fromtimestamp(ts / 1000).strftime("%b %d, %Y, %I:%M:%S %p")


def format_duration(ms):
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_cost(cost):
    """Format a dollar amount, keeping four decimals for sub-cent costs."""
    if cost == 0:
        return "$0.00"
    if cost < 0.01:
        return f"${cost:.4f}"
    return f"${cost:.2f}"


def format_tokens(count):
    return f"{count:,}"


_jinja_env = Environment(
    loader=PackageLoader("cline_transcripts", "templates"),
    autoescape=True,
)
_jinja_env.filters["timestamp"] = format_timestamp
_jinja_env.filters["duration"] = format_duration
_jinja_env.filters["cost"] = format_cost
_jinja_env.filters["tokens"] = format_tokens

# Load macros template and expose macros
_macros_template = _jinja_env.get_template("macros.html")
_macros = _macros_template.module


def get_template(name):
    """Get a Jinja2 template by name."""
    return _jinja_env.get_template(name)


# Code blocks as emitted by the fenced_code extension
CODE_BLOCK_PATTERN = re.compile(
    r'<pre><code(?: class="language-([^"]+)")?>(.*?)</code></pre>', re.DOTALL
)


def highlight_code(code, language=None):
    """Apply syntax highlighting to code using Pygments.

    Returns:
        Tuple of (language label, highlighted HTML).
    """
    try:
        lexer = get_lexer_by_name(language) if language else TextLexer()
    except ClassNotFound:
        lexer = TextLexer()
        language = None
    formatter = HtmlFormatter(nowrap=True, cssclass="highlight")
    return language or "plaintext", highlight(code, lexer, formatter)


def _render_code_block(match):
    code = html.unescape(match.group(2))
    if code.endswith("\n"):
        code = code[:-1]
    language, highlighted = highlight_code(code, match.group(1))
    return str(_macros.code_block(language, code, highlighted))


def render_markdown_text(text):
    if not text:
        return ""
    rendered = markdown.markdown(text, extensions=["fenced_code", "tables"])
    return CODE_BLOCK_PATTERN.sub(_render_code_block, rendered)
