"""Core helpers for wiring application components together."""

from .error_handlers import (
    AuthorizationError,
    BrainBattleError,
    NotFoundError,
    SessionIdentityMismatch,
    SubmissionError,
    ValidationError,
)
from .module_registry import (
    DEFAULT_MODULES,
    ModuleDefinition,
    register_default_modules,
    register_modules,
)

__all__ = [
    "AuthorizationError",
    "BrainBattleError",
    "NotFoundError",
    "SessionIdentityMismatch",
    "SubmissionError",
    "ValidationError",
    "DEFAULT_MODULES",
    "ModuleDefinition",
    "register_default_modules",
    "register_modules",
]
