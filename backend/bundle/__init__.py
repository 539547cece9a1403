"""
Bundle Module

Models for the package metadata embedded in bundle images.
"""

from bundle.spec import (
    ParameterDescriptor,
    Plan,
    Spec,
    SpecParseError,
    decode_spec_label,
    parse_spec,
    spec_id_for,
    SPEC_LABEL,
    RUNTIME_LABEL,
)

__all__ = [
    'ParameterDescriptor',
    'Plan',
    'Spec',
    'SpecParseError',
    'decode_spec_label',
    'parse_spec',
    'spec_id_for',
    'SPEC_LABEL',
    'RUNTIME_LABEL',
]
