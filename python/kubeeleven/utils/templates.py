"""
kubeeleven/utils/templates.py

Loads and renders Jinja2 templates for generated provisioning files. The
packaged templates live in kubeeleven/templates; a different file can be
supplied by path. Jinja2 failures are re-raised as TemplateError.
"""

from __future__ import annotations

import os
from typing import Any, Mapping, Optional

import jinja2

from kubeeleven.exceptions import TemplateError

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "templates")
KUBEONE_TEMPLATE = "kubeone.yaml.j2"


def load_template(
    template_name: str = KUBEONE_TEMPLATE, template_path: Optional[str] = None
) -> jinja2.Template:
    """
    Load a template either from the packaged templates directory or from an
    explicit file path.

    Args:
        template_name: Name of a packaged template.
        template_path: If set, load this file instead of the packaged template.

    Returns:
        The compiled jinja2.Template.

    Raises:
        TemplateError: If the template is missing or has a syntax error.
    """
    if template_path is not None:
        root_path, file_name = os.path.split(os.path.abspath(template_path))
    else:
        root_path, file_name = TEMPLATES_DIR, template_name

    env = jinja2.Environment(
        loader=jinja2.FileSystemLoader(root_path),
        undefined=jinja2.StrictUndefined,
        keep_trailing_newline=True,
        autoescape=False,
    )
    try:
        return env.get_template(file_name)
    except jinja2.TemplateSyntaxError as e:
        raise TemplateError(
            f"Syntax error in template {file_name} line {e.lineno}: {e.message}"
        ) from e
    except jinja2.TemplateNotFound as e:
        raise TemplateError(f"Template {file_name} not found in {root_path}") from e


def render_template(template: jinja2.Template, variables: Mapping[str, Any]) -> str:
    """
    Render `template` with `variables`.

    Raises:
        TemplateError: If rendering fails, e.g. on an undefined variable.
    """
    try:
        return template.render(variables)
    except jinja2.TemplateError as e:
        raise TemplateError(f"Error rendering template {template.name}: {e}") from e
