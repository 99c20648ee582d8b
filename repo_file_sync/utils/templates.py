"""Contains utilities for rendering Jinja2 templates."""

from pathlib import Path
from typing import Any

import jinja2
import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def construct_jinja2_environment() -> jinja2.Environment:
    """Construct the Jinja2 environment used to render synced template files."""
    return jinja2.Environment(
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def construct_jinja2_template_from_file(template_path: Path | str, environment: jinja2.Environment | None = None) -> jinja2.Template:
    """Construct a Jinja2 template from a file."""
    if environment is None:
        environment = construct_jinja2_environment()
    try:
        with open(template_path, encoding="utf-8") as f:
            template_content = f.read()
    except FileNotFoundError:
        logger.error("Jinja2 template not found", template_path=str(template_path))
        raise
    return environment.from_string(template_content)


def render_template_file(template_path: Path, context: dict[str, Any], environment: jinja2.Environment | None = None) -> str:
    """Render a template file against a plain mapping context."""
    template = construct_jinja2_template_from_file(template_path, environment)
    try:
        return template.render(context)
    except jinja2.TemplateError as exc:
        logger.error("Failed to render template", template_path=str(template_path), error=str(exc))
        raise
