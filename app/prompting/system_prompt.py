"""System-prompt template loading and rendering.

Architectural role:
    Owns the markdown instruction text sent to the downstream model as the
    system message. The template is a CommonMark document shipped next to this
    module (`templates/system.md`); the only live value interpolated into it is
    the current date.

Rendering model:
    - jinja2 with `StrictUndefined`: a template referencing any variable other
      than `current_date` fails loudly instead of rendering an empty string.
    - No autoescaping. The output is markdown, not HTML.
    - Trailing newline is preserved so the rendered text matches the file.

Determinism:
    Deterministic for a fixed template and a fixed `now`. Callers that omit
    `now` get the wall-clock date in `PROMPT_TIMEZONE`.

Prompt contract:
    The rendered text is opaque instruction text. Nothing downstream of this
    module edits, trims, or re-wraps it.
"""

import os
from datetime import datetime
from zoneinfo import ZoneInfo

from dotenv import load_dotenv
from jinja2 import Environment, FileSystemLoader, StrictUndefined

load_dotenv()

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")
DEFAULT_TEMPLATE_NAME = "system.md"

# Optional override for deployments that ship their own prompt file.
PROMPT_TEMPLATE_PATH = os.getenv("PROMPT_TEMPLATE_PATH")
PROMPT_TIMEZONE = os.getenv("PROMPT_TIMEZONE", "UTC")

DATE_FORMAT = "%A, %d %B %Y"


def _environment(search_dir):
    return Environment(
        loader=FileSystemLoader(search_dir),
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )


def template_path(path=None):
    """Resolve the template file: explicit path, env override, packaged file."""
    if path:
        return os.path.abspath(path)
    if PROMPT_TEMPLATE_PATH:
        return os.path.abspath(PROMPT_TEMPLATE_PATH)
    return os.path.join(TEMPLATES_DIR, DEFAULT_TEMPLATE_NAME)


def load_template(path=None) -> str:
    """Return the raw, unrendered template text."""
    with open(template_path(path), "r", encoding="utf-8") as f:
        return f.read()


def current_date_string(now=None, tz=None) -> str:
    """Format the live date line of the prompt.

    Args:
        now: Optional `datetime` or `date`. Naive datetimes are taken as-is.
        tz: IANA timezone name used when `now` is omitted.

    Returns:
        Date in `DATE_FORMAT`, e.g. `Saturday, 17 October 2026`.
    """
    if now is None:
        now = datetime.now(ZoneInfo(tz or PROMPT_TIMEZONE))
    return now.strftime(DATE_FORMAT)


def render_system_prompt(now=None, template=None) -> str:
    """Render the system prompt with the current date filled in.

    Args:
        now: Optional date/datetime to render instead of the wall clock.
        template: Optional raw template text. When omitted, the template file
            from `template_path()` is loaded through the jinja2 loader.

    Returns:
        Rendered markdown prompt.

    Failure handling:
        `jinja2.UndefinedError` for unknown template variables and
        `jinja2.TemplateSyntaxError` for malformed template tags propagate to
        the caller.
    """
    date_text = current_date_string(now)

    if template is not None:
        env = _environment(TEMPLATES_DIR)
        return env.from_string(template).render(current_date=date_text)

    path = template_path()
    env = _environment(os.path.dirname(path))
    return env.get_template(os.path.basename(path)).render(current_date=date_text)
