"""
shared_templates.py

Responsibility: Provides the single shared Jinja2 Environment used to render
notification messages, with application-wide globals (e.g. APP_VERSION) pre-set.

Does NOT: send messages, or contain any business logic.
"""

import os

from jinja2 import Environment, FileSystemLoader, StrictUndefined

# ---------------------------------------------------------------------------
# Application version: update here on every release
# ---------------------------------------------------------------------------

APP_VERSION = "v1.4.0"

# ---------------------------------------------------------------------------
# Shared templates instance: import this wherever a message is rendered
# instead of creating a new Environment locally, so env globals are consistent.
# ---------------------------------------------------------------------------

_TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

templates = Environment(
    loader=FileSystemLoader(_TEMPLATE_DIR),
    undefined=StrictUndefined,
    keep_trailing_newline=False,
)
templates.globals["app_version"] = APP_VERSION
