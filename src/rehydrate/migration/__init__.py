"""Versioned persisted-state migration.

This package turns previously saved, possibly stale or corrupted store state
into state that satisfies the current schema, without ever failing on bad
data.

Example:
    >>> from typing import Any, Optional
    >>> from rehydrate.migration import (
    ...     MigrationExecutor,
    ...     SchemaRegistry,
    ...     create_store_schema,
    ... )
    >>>
    >>> registry = SchemaRegistry()
    >>> registry.store(
    ...     "auth",
    ...     schema=create_store_schema(
    ...         "AuthState",
    ...         user=Optional[dict[str, Any]],
    ...         is_initialized=bool,
    ...     ),
    ...     initial_state={"user": None, "is_initialized": False},
    ...     current_version=2,
    ...     transformers={1: lambda raw: {"user": raw.get("logged_in_user")}},
    ... )
    >>>
    >>> executor = MigrationExecutor(registry)
    >>> executor.migrate("auth", {"logged_in_user": {"id": "42"}}, 1)
    {'user': {'id': '42'}, 'is_initialized': False}
"""

from rehydrate.migration.base import (
    ConfigurationError,
    FieldRecoveryError,
    MigrationError,
    MigrationFunction,
    MigrationOutcome,
    MigrationResult,
    RegistrationError,
    ResetReason,
    SchemaRegistration,
    StateValidationError,
    TransformError,
    Transformer,
)
from rehydrate.migration.schema import (
    FieldValidator,
    StateSchema,
    create_store_schema,
    validate_field,
)
from rehydrate.migration.registry import SchemaRegistry
from rehydrate.migration.executor import MigrationExecutor, migrate_state

__all__ = [
    # Base types
    "MigrationOutcome",
    "MigrationResult",
    "ResetReason",
    "SchemaRegistration",
    "Transformer",
    "MigrationFunction",
    # Exceptions
    "MigrationError",
    "ConfigurationError",
    "RegistrationError",
    "TransformError",
    "FieldRecoveryError",
    "StateValidationError",
    # Schema
    "FieldValidator",
    "StateSchema",
    "create_store_schema",
    "validate_field",
    # Registry and executor
    "SchemaRegistry",
    "MigrationExecutor",
    "migrate_state",
]
