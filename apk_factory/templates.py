from __future__ import annotations

import os
import shlex
from typing import Any, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape


UTIL_TEMPLATES = os.path.join(os.path.dirname(os.path.abspath(__file__)), "util_templates")
PROJECT_TEMPLATE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "project_template")


def _none_as_empty(value: Any) -> Any:
    return "" if value is None else value


def android_string(value: Any) -> str:
    text = "" if value is None else str(value)
    return text.replace("\\", "\\\\").replace("'", "\\'").replace('"', '\\"')


_DNAME_SPECIAL = frozenset(",+=\"\\<>;")


def dname_escape(value: Any) -> str:
    """Escape one X.500 attribute value for a keytool ``-dname``."""
    text = "" if value is None else str(value)
    chars = ["\\" + char if char in _DNAME_SPECIAL else char for char in text]
    if chars and chars[0] in ("#", " "):
        chars[0] = "\\" + chars[0]
    if len(chars) > 1 and chars[-1] == " ":
        chars[-1] = "\\ "
    return "".join(chars)


def shell_quote(value: Any) -> str:
    return shlex.quote("" if value is None else str(value))


class TemplateRenderer:
    """Jinja2 environment over an ordered list of template roots.

    Earlier roots win, so the vendor project template shadows the util
    templates and the util templates only fill in what the vendor lacks.
    """

    def __init__(self, search_path: Sequence[str]) -> None:
        self.search_path = [os.path.abspath(root) for root in search_path]
        self.env = Environment(
            loader=FileSystemLoader(self.search_path),
            autoescape=select_autoescape(enabled_extensions=("xml",), default_for_string=False),
            keep_trailing_newline=True,
            finalize=_none_as_empty,
        )
        self.env.filters["android_string"] = android_string
        self.env.filters["dname_escape"] = dname_escape
        self.env.filters["shell_quote"] = shell_quote

    def render(self, template_name: str, data: dict[str, Any]) -> str:
        return self.env.get_template(template_name).render(**data)
