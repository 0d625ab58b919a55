"""Template resolution: placeholder substitution and template sources."""

from resolver.template import PLACEHOLDER, find_placeholders, process_template
from resolver.loader import TemplateLoader, TemplateNotFoundError

__all__ = [
    "PLACEHOLDER",
    "find_placeholders",
    "process_template",
    "TemplateLoader",
    "TemplateNotFoundError",
]
