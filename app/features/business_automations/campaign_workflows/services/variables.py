"""
{{variable}} substitution for email subjects and bodies.
"""

import re
from typing import Dict, List, Optional

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")

AVAILABLE_VARIABLES = [
    "name",
    "firstName",
    "lastName",
    "company",
    "title",
    "email",
    "phone",
    "linkedin",
]


def replace_variables(template: str, variables: Dict[str, Optional[str]]) -> str:
    """
    Replace every {{name}} token with variables[name].

    Tokens whose value is missing, None or empty are left verbatim so a
    reviewer can spot unfilled placeholders.
    """
    if not template:
        return template or ""

    def _substitute(match: "re.Match") -> str:
        value = variables.get(match.group(1))
        if value is None or value == "":
            return match.group(0)
        return str(value)

    return VARIABLE_PATTERN.sub(_substitute, template)


def extract_prospect_variables(prospect) -> Dict[str, str]:
    """Build the substitution map from a Prospect (or any object with its attributes)."""
    name = getattr(prospect, "name", None) or ""
    name_parts = name.split(" ") if name else []

    first_name = getattr(prospect, "first_name", None) or (name_parts[0] if name_parts else "")
    last_name = getattr(prospect, "last_name", None) or " ".join(name_parts[1:])

    return {
        "name": name,
        "firstName": first_name,
        "lastName": last_name,
        "company": getattr(prospect, "company", None) or "",
        "title": getattr(prospect, "title", None) or "",
        "email": getattr(prospect, "email", None) or "",
        "phone": getattr(prospect, "phone", None) or "",
        "linkedin": getattr(prospect, "linkedin_url", None) or "",
    }


def extract_variables(template: str) -> List[str]:
    """Distinct variable names in order of first appearance."""
    seen: List[str] = []
    for match in VARIABLE_PATTERN.finditer(template or ""):
        if match.group(1) not in seen:
            seen.append(match.group(1))
    return seen
