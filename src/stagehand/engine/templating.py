"""
Stagehand Templating Engine

Jinja2-based rendering of task arguments against a host's variables.
"""

import logging
import os
from typing import Any, Callable, Dict, Mapping, Optional

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from stagehand.engine.errors import TemplateError

logger = logging.getLogger(__name__)

# Upper bound on rounds of variable-to-variable resolution
MAX_RESOLVE_PASSES = 10


def has_markers(value: Any) -> bool:
    """True for a string holding Jinja2 expression or statement markers."""
    return isinstance(value, str) and ('{{' in value or '{%' in value)


def _filter_default(value: Any, default: Any = '') -> Any:
    """Return default if value is None."""
    return default if value is None else value


def _filter_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ('true', 'yes', '1', 'on')
    return bool(value)


CUSTOM_FILTERS: Dict[str, Callable[..., Any]] = {
    'default': _filter_default,
    'd': _filter_default,
    'lower': lambda x: str(x).lower(),
    'upper': lambda x: str(x).upper(),
    'replace': lambda s, old, new: str(s).replace(old, new),
    'bool': _filter_bool,
    'string': lambda x: str(x),
    'trim': lambda x: str(x).strip(),
    'basename': lambda p: os.path.basename(str(p)),
    'dirname': lambda p: os.path.dirname(str(p)),
}


class TemplateEngine:
    """
    Jinja2 environment configured for argument rendering.

    Undefined variables are errors rather than empty strings, so a typo in
    an argument fails its task instead of passing a blank value to a module.
    """

    def __init__(self) -> None:
        self.env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        for name, func in CUSTOM_FILTERS.items():
            self.env.filters[name] = func

    def render(self, template_str: str, variables: Mapping[str, Any]) -> str:
        """
        Render a template string with variables.

        Raises:
            TemplateError: If the template is invalid or a variable is undefined
        """
        if not isinstance(template_str, str):
            return template_str

        # Fast path: no template markers
        if not has_markers(template_str):
            return template_str

        try:
            return self.env.from_string(template_str).render(dict(variables))
        except UndefinedError as e:
            raise TemplateError(f"Undefined variable: {e}", template=template_str) from e
        except TemplateSyntaxError as e:
            raise TemplateError(f"Template syntax error: {e}", template=template_str) from e
        except Exception as e:
            raise TemplateError(f"{type(e).__name__}: {e}", template=template_str) from e

    def render_args(
        self,
        args: Mapping[str, str],
        variables: Mapping[str, Any],
    ) -> Dict[str, str]:
        """Render every argument value; keys are left alone."""
        return {key: self.render(value, variables) for key, value in args.items()}

    def resolve_vars(
        self,
        variables: Mapping[str, Any],
        context: Optional[Mapping[str, Any]] = None,
        max_passes: int = MAX_RESOLVE_PASSES,
    ) -> Dict[str, Any]:
        """
        Render variable values that reference other variables.

        Each pass renders every templated value against ``context`` overlaid
        with the previous pass's values, until a pass changes nothing or
        ``max_passes`` is reached. A value that fails to render, or is still
        templated after the last pass, becomes a strict undefined carrying
        the reason, so only the templates that use it fail.
        """
        resolved: Dict[str, Any] = dict(variables)
        pending = {key for key, value in resolved.items() if has_markers(value)}
        if not pending:
            return resolved

        errors: Dict[str, str] = {}
        for _ in range(max_passes):
            scope = {**(context or {}), **resolved}
            changed = False
            for key in sorted(pending):
                try:
                    value = self.render(resolved[key], scope)
                except TemplateError as e:
                    errors[key] = str(e)
                    continue
                errors.pop(key, None)
                if value != resolved[key]:
                    resolved[key] = value
                    changed = True
                if not has_markers(value):
                    pending.discard(key)
            if not pending or not changed:
                break

        for key in pending:
            reason = errors.get(key, "references do not resolve")
            logger.debug("variable %s left unresolved: %s", key, reason)
            resolved[key] = self.env.undefined(hint=f"variable '{key}' could not be rendered: {reason}")
        return resolved
