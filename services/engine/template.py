"""Template resolution for {{ name }} references to workflow variables and node outputs."""

from typing import Dict, Any
from jinja2 import BaseLoader, StrictUndefined, TemplateSyntaxError, UndefinedError
from jinja2.sandbox import SandboxedEnvironment

from shared.exceptions import TemplateResolutionError
from shared.utils import decode_json_value


class TemplateResolver:

    def __init__(self):
        # Sandboxed so planner-written templates cannot reach Python internals
        self.jinja_env = SandboxedEnvironment(
            loader=BaseLoader(),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def resolve(self, value: Any, context: Dict[str, Any]) -> Any:
        """Recursively renders every template string in value against context"""
        if isinstance(value, str):
            return self._render(value, context)

        elif isinstance(value, dict):
            return {k: self.resolve(v, context) for k, v in value.items()}

        elif isinstance(value, list):
            return [self.resolve(item, context) for item in value]

        else:
            return value

    def render_text(self, text: str, context: Dict[str, Any]) -> str:
        """Renders text without type coercion"""
        if not text or '{{' not in text:
            return text
        try:
            return self.jinja_env.from_string(text).render(context)
        except (TemplateSyntaxError, UndefinedError) as e:
            raise TemplateResolutionError(f"Template resolution failed: {str(e)}")

    def _render(self, value: str, context: Dict[str, Any]) -> Any:
        if '{{' not in value or '}}' not in value:
            return value

        resolved = self.render_text(value, context)

        if resolved.startswith(('{', '[', '"')) or resolved in ('true', 'false', 'null'):
            return decode_json_value(resolved)

        # Try to parse as number
        try:
            if '.' not in resolved:
                return int(resolved)
            return float(resolved)
        except (ValueError, TypeError):
            return resolved
