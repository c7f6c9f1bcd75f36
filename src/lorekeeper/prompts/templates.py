"""
Prompt templates for LLM-assisted retrieval.

Jinja2 templates with user customization support. Templates are loaded from
an optional override directory with fallback to built-in defaults.
"""

import logging
from pathlib import Path
from typing import Any, Callable

from jinja2 import BaseLoader, Environment, TemplateNotFound

logger = logging.getLogger(__name__)


TIER3_SYSTEM_TEMPLATE = "tier3_entry_selection.system.j2"
TIER3_USER_TEMPLATE = "tier3_entry_selection.user.j2"


# =============================================================================
# Default Templates (Built-in)
# =============================================================================

DEFAULT_TEMPLATES = {
    TIER3_SYSTEM_TEMPLATE: """\
# Role
You are selecting which story entries are relevant for the next narrative response{% if mode %} in a {{ mode }} story{% endif %}.

## Task
Analyze the current scene, user input, and available entries to identify which entries are ACTUALLY relevant to this specific moment in the story.

## Selection Criteria
Consider:
- Characters who might be referenced or affected
- Locations that might be mentioned
- Items that could be relevant to the action
- Story threads that connect to this moment

Only include entries that have a clear connection to the current scene or user's intended action. Do not include entries just because they exist in the world.
""",

    TIER3_USER_TEMPLATE: """\
# Current Scene
{{ recent_content or "(Story just started)" }}

# User's Input
"{{ user_input }}"

# Available Entries
{{ entry_summaries }}

Which entries (by number) are relevant to the current scene and user input? Put their numbers in selectedIds, most relevant first.
""",
}


class PromptTemplateLoader(BaseLoader):
    """
    Jinja2 loader that checks the override directory first,
    then falls back to built-in defaults.
    """

    def __init__(self, templates_dir: Path | None = None):
        self.templates_dir = templates_dir

    def get_source(
        self, environment: Environment, template: str
    ) -> tuple[str, str | None, Callable[[], bool]]:
        if self.templates_dir:
            user_template = self.templates_dir / template
            if user_template.exists():
                mtime = user_template.stat().st_mtime
                source = user_template.read_text(encoding="utf-8")
                return source, str(user_template), lambda: user_template.stat().st_mtime == mtime

        if template in DEFAULT_TEMPLATES:
            return DEFAULT_TEMPLATES[template], None, lambda: True

        raise TemplateNotFound(template)


class TemplateEngine:
    """Renders retrieval prompts from overridable Jinja2 templates."""

    def __init__(self, templates_dir: Path | str | None = None):
        """
        Args:
            templates_dir: Directory of user template overrides.
                          If None, only built-in defaults are used.
        """
        self.templates_dir = Path(templates_dir) if templates_dir else None
        self._env = Environment(
            loader=PromptTemplateLoader(self.templates_dir),
            trim_blocks=True,
            lstrip_blocks=False,
            keep_trailing_newline=False,
        )

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        """Render ``template_name`` with ``context``."""
        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound:
            logger.error("Template not found: %s", template_name)
            raise
        return template.render(**context)

    def has_user_template(self, template_name: str) -> bool:
        """Check if a user-customized template exists."""
        if not self.templates_dir:
            return False
        return (self.templates_dir / template_name).exists()

    def list_templates(self) -> dict[str, bool]:
        """Map each built-in template name to whether it is overridden."""
        return {name: self.has_user_template(name) for name in DEFAULT_TEMPLATES}
