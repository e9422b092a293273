"""
Template Engine

Extracts {{variable}} placeholders from letter templates, splits them into
automatic (filled from the dossier) and manual (typed by the admin) variables,
and renders the final text.
"""
import re
from typing import Dict, List, Mapping, Optional

from ...models.letters import TemplateAnalysis, TemplateVariable

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")


def placeholder(name: str) -> str:
    return "{{" + name + "}}"


def extract_variables(template_content: str) -> List[str]:
    """Distinct placeholder names, trimmed, in order of first appearance."""
    names: List[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(template_content or ""):
        name = match.group(1).strip()
        if name not in names:
            names.append(name)
    return names


def analyze_template(template_content: str, mapping: Mapping[str, str]) -> TemplateAnalysis:
    """
    Partition the template's variables.

    Automatic variables are those the mapping knows, returned with their value.
    Every other extracted name is manual and comes back with an empty value.
    """
    analysis = TemplateAnalysis()
    for name in extract_variables(template_content):
        if name in mapping:
            analysis.automatic.append(TemplateVariable(key=name, value=mapping[name]))
        else:
            analysis.manual.append(TemplateVariable(key=name, value=""))
    return analysis


def render_template(
    template_content: str,
    mapping: Mapping[str, str],
    manual_values: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Replace placeholders with their values.

    Every occurrence of each automatic placeholder is replaced first, then every
    occurrence of each manual placeholder (empty string when no value was
    supplied). Only the exact "{{name}}" text is replaced: anything else that
    looks like a placeholder stays in the output verbatim.
    """
    manual_values = manual_values or {}
    content = template_content or ""

    for name, value in mapping.items():
        content = content.replace(placeholder(name), value)

    manual_names = [v.key for v in analyze_template(template_content, mapping).manual]
    for name in list(manual_values) + [n for n in manual_names if n not in manual_values]:
        content = content.replace(placeholder(name), manual_values.get(name) or "")

    return content


def missing_manual_values(template_content: str, mapping: Mapping[str, str],
                          manual_values: Optional[Mapping[str, str]] = None) -> List[str]:
    """Manual variables for which the caller supplied no (or a blank) value."""
    manual_values = manual_values or {}
    return [
        v.key for v in analyze_template(template_content, mapping).manual
        if not (manual_values.get(v.key) or "").strip()
    ]


def preview(template_content: str, mapping: Dict[str, str]) -> str:
    """Render with automatic values only, leaving manual placeholders visible."""
    content = template_content or ""
    for name, value in mapping.items():
        content = content.replace(placeholder(name), value)
    return content
