"""Template variable substitution.

Templates are YAML documents carrying ${UPPER_SNAKE_CASE} placeholders.
Substitution is purely textual and happens before parsing, so a value may
land anywhere in the document (keys, scalars, list entries).
"""

import re
from typing import Mapping

# Placeholder names are upper-case letters and underscores only
PLACEHOLDER = re.compile(r'\$\{([A-Z_]+)\}')


def process_template(template: str, variables: Mapping[str, str]) -> str:
    """Replace ${NAME} placeholders with values from variables.

    Placeholders with no matching variable are left in place so the
    result still shows which value was missing.

    Args:
        template: Raw template text
        variables: Placeholder name to replacement value

    Returns:
        Template text with known placeholders substituted
    """
    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return PLACEHOLDER.sub(_substitute, template)


def find_placeholders(template: str) -> list[str]:
    """List placeholder names in order of first appearance."""
    seen: list[str] = []
    for name in PLACEHOLDER.findall(template):
        if name not in seen:
            seen.append(name)
    return seen
