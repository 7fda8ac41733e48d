"""Jinja2 template rendering for the generated Hardhat project files.

Provides the TemplateRenderer class which loads Jinja2 templates from the
``hardhat_shield/scaffolder/templates/`` directory and renders them with a
project context (network profile, token descriptor, transfer settings).

Two filters quote values for the grammar they land in:

- ``js_str``  -- a JavaScript string literal (``"..."``, JSON-escaped)
- ``sol_str`` -- a Solidity string literal; values that would need escaping
  are refused rather than escaped
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config import check_literal_safe

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Renders Jinja2 templates for project scaffolding.

    Undefined context variables raise instead of rendering as empty strings,
    so a missing value can never silently produce a broken file.
    """

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["js_str"] = _js_string_filter
        self.env.filters["sol_str"] = _solidity_string_filter

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"scripts/mint.js.j2"``).
            context: Dictionary of variables available inside the template.

        Raises:
            jinja2.UndefinedError: If the template uses a missing variable.
            ValueError: If a ``sol_str`` value cannot sit in a Solidity literal.
        """
        template = self.env.get_template(template_path)
        return template.render(**context)

    async def render_to_file(
        self,
        template_path: str,
        output_path: str | Path,
        context: dict[str, Any],
    ) -> Path:
        """Render a template and write the result to *output_path*.

        The whole file is rendered before anything is written, so a render
        error leaves any existing file untouched.
        """
        content = self.render(template_path, context)
        out = Path(output_path)
        await asyncio.to_thread(_write_file, out, content)
        return out


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _js_string_filter(value: Any) -> str:
    """Quote *value* as a JavaScript string literal."""
    return json.dumps(str(value))


def _solidity_string_filter(value: Any) -> str:
    """Quote *value* as a Solidity string literal, refusing unsafe input."""
    return f'"{check_literal_safe(str(value), "Solidity string")}"'


def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
