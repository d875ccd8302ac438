# /riotbot/services/template_service.py

"""
Placeholder substitution for tutorial message bodies.

Flow files use the ``{{.Name}}`` field-lookup syntax (whitespace inside the
braces is allowed). Those actions are rewritten to Jinja2 variable lookups
and the body is rendered through a shared ``jinja2.Environment``. A variable
that is not defined renders as ``<no value>``, the marker the flow files have
always produced for a missing key. Rendering never raises to the caller:
failures are logged and produce an empty body so the tutorial keeps moving.
"""

import logging
import re
from functools import lru_cache
from typing import Mapping

import jinja2

from riotbot.models.flow import TutorialStep

logger = logging.getLogger(__name__)

NO_VALUE = "<no value>"

_FIELD_ACTION_RE = re.compile(r"\{\{\s*\.([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class NoValueUndefined(jinja2.Undefined):
    """Prints missing variables as ``<no value>``; any other use still fails."""

    __slots__ = ()

    def __str__(self) -> str:
        logger.warning(f"Template variable '{self._undefined_name}' is not defined")
        return NO_VALUE


_environment = jinja2.Environment(
    undefined=NoValueUndefined,
    autoescape=False,
    keep_trailing_newline=True,
)


def to_jinja_source(source: str) -> str:
    """Rewrites ``{{ .Name }}`` actions to Jinja's ``{{ Name }}``."""
    return _FIELD_ACTION_RE.sub(r"{{ \1 }}", source)


@lru_cache(maxsize=256)
def compile_template(source: str) -> jinja2.Template:
    """Compiles a flow body. Raises ``jinja2.TemplateSyntaxError`` if it is malformed."""
    return _environment.from_string(to_jinja_source(source))


def render_body(step: TutorialStep, variables: Mapping[str, str]) -> str:
    """Renders a step body, returning an empty string on any template failure."""
    if not step.body:
        return ""

    try:
        template = compile_template(step.body)
    except jinja2.TemplateSyntaxError as e:
        logger.error(f"Failed to create message template: {e}")
        return ""

    if not isinstance(variables, Mapping):
        logger.error(f"Failed to execute template substitution: variables must be a mapping, got {type(variables).__name__}")
        return ""

    try:
        return template.render(variables)
    except jinja2.UndefinedError as e:
        logger.error(f"Failed to execute template substitution: {e}")
        return ""
    except Exception as e:
        logger.error(f"Unexpected error rendering message template: {e}", exc_info=True)
        return ""
