"""Plugin discovery through package entry points."""

from .plugins import (
    PARAMETER_TYPES_GROUP,
    STEP_TYPES_GROUP,
    discover_parameter_type_providers,
    discover_step_type_providers,
)

__all__ = [
    "PARAMETER_TYPES_GROUP",
    "STEP_TYPES_GROUP",
    "discover_parameter_type_providers",
    "discover_step_type_providers",
]
