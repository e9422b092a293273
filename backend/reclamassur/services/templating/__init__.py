"""
Letter Templating

Variable mapping from dossiers and {{variable}} template rendering.
"""

from .variables import (
    build_variable_mapping,
    build_mapping_for_dossier,
    resolve_claim_type_label,
    format_currency_eur,
    format_plain_number,
    format_short_date,
    format_long_date,
    LEGACY_CLAIM_TYPE_LABELS,
    AUTOMATIC_VARIABLES,
)
from .engine import (
    extract_variables,
    analyze_template,
    render_template,
    missing_manual_values,
    preview,
)

__all__ = [
    'build_variable_mapping',
    'build_mapping_for_dossier',
    'resolve_claim_type_label',
    'format_currency_eur',
    'format_plain_number',
    'format_short_date',
    'format_long_date',
    'LEGACY_CLAIM_TYPE_LABELS',
    'AUTOMATIC_VARIABLES',
    'extract_variables',
    'analyze_template',
    'render_template',
    'missing_manual_values',
    'preview',
]
