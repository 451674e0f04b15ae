from __future__ import annotations

import json
import re
from pathlib import Path

import markdown
from pygments.formatters import HtmlFormatter

TAG_RE = re.compile(r"<[^>]+>")
HIGHLIGHT_CSS_CLASS = "codehilite"
MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "codehilite"]


def render_markdown(text: str) -> str:
    md = markdown.Markdown(
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs={
            "codehilite": {"css_class": HIGHLIGHT_CSS_CLASS, "guess_lang": False, "noclasses": False},
        },
    )
    html_content = md.convert(text)
    return f'<div class="processed-markdown">{html_content}</div>'


def highlight_css(style: str = "default") -> str:
    return HtmlFormatter(style=style).get_style_defs(f".{HIGHLIGHT_CSS_CLASS}")


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def write_json(path: Path, data: object) -> None:
    write_text(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
