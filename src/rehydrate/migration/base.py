"""Base types for persisted-state migration.

This module defines the exceptions, the registration record and the tagged
result that the migration engine produces.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping

if TYPE_CHECKING:
    from rehydrate.migration.schema import StateSchema


# =============================================================================
# Exceptions
# =============================================================================


class MigrationError(Exception):
    """Base exception for migration-related errors."""

    pass


class ConfigurationError(MigrationError):
    """Raised when a migration is requested for an unregistered store."""

    def __init__(self, store_name: str) -> None:
        self.store_name = store_name
        super().__init__(
            f"Store '{store_name}' is not registered, cannot create a migration"
        )


class RegistrationError(MigrationError):
    """Raised when a store registration is malformed."""

    def __init__(self, store_name: str, message: str) -> None:
        self.store_name = store_name
        super().__init__(f"Invalid registration for store '{store_name}': {message}")


class TransformError(MigrationError):
    """A transformer rejected an old-version blob."""

    def __init__(self, store_name: str, from_version: Any, message: str) -> None:
        self.store_name = store_name
        self.from_version = from_version
        super().__init__(
            f"Transformation of store '{store_name}' from version "
            f"{from_version} failed: {message}"
        )


class FieldRecoveryError(MigrationError):
    """Field-by-field salvage could not produce a valid state."""

    def __init__(self, store_name: str, message: str) -> None:
        self.store_name = store_name
        super().__init__(f"Field recovery for store '{store_name}' failed: {message}")


class StateValidationError(MigrationError):
    """Raised when an in-memory state update does not satisfy the schema."""

    def __init__(self, store_name: str, errors: list[str]) -> None:
        self.store_name = store_name
        self.errors = errors
        super().__init__(
            f"State update for store '{store_name}' rejected: {'; '.join(errors)}"
        )


# =============================================================================
# Enums
# =============================================================================


class MigrationOutcome(Enum):
    """Terminal state of a single migration."""

    VALID = "valid"  # Merged blob passed whole-object validation
    PARTIAL_RECOVERY = "partial_recovery"  # Some fields fell back to defaults
    RESET = "reset"  # Whole store fell back to the initial state


class ResetReason(str, Enum):
    """Why a migration ended in a reset."""

    NO_USABLE_BLOB = "no_usable_blob"
    TRANSFORM_FAILED = "transform_failed"
    FIELD_RECOVERY_FAILED = "field_recovery_failed"


# =============================================================================
# Type aliases
# =============================================================================

# Maps an old persisted shape to a patch merged over the initial state
Transformer = Callable[[Any], Mapping[str, Any]]

# Signature of the closure handed to a host store's rehydrate hook
MigrationFunction = Callable[[Any, Any], dict[str, Any]]


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class SchemaRegistration:
    """Migration configuration for one store.

    Attributes:
        store_name: Unique name of the store inside a registry.
        schema: Whole-object schema plus per-field validators.
        initial_state: Default state, used for merging and resets. Stored in
            its validated form: keys the schema does not know are dropped and
            values are normalized.
        current_version: Version written by the current code.
        transformers: Old version -> function producing a patch.
        debug: Whether to emit debug traces for this store.
        label: Display name used in log lines.
    """

    store_name: str
    schema: StateSchema
    initial_state: Mapping[str, Any]
    current_version: int
    transformers: Mapping[int, Transformer] = field(default_factory=dict)
    debug: bool = False
    label: str | None = None

    def __post_init__(self) -> None:
        if not self.store_name:
            raise RegistrationError(repr(self.store_name), "store name is empty")
        if isinstance(self.current_version, bool) or not isinstance(
            self.current_version, int
        ):
            raise RegistrationError(
                self.store_name,
                f"current_version must be an int, got {self.current_version!r}",
            )
        if not isinstance(self.initial_state, Mapping):
            raise RegistrationError(self.store_name, "initial_state must be a mapping")
        for version, transformer in self.transformers.items():
            if isinstance(version, bool) or not isinstance(version, int):
                raise RegistrationError(
                    self.store_name, f"transformer version must be an int, got {version!r}"
                )
            if not callable(transformer):
                raise RegistrationError(
                    self.store_name, f"transformer for version {version} is not callable"
                )
        ok, validated = self.schema.safe_validate(self.initial_state)
        if not ok or validated is None:
            raise RegistrationError(
                self.store_name, "initial_state does not satisfy the schema"
            )
        # keep the validated form so resets match a migrated state
        object.__setattr__(self, "initial_state", validated)

    @property
    def display_name(self) -> str:
        """Name used in log output."""
        return self.label or self.store_name

    def fresh_initial_state(self) -> dict[str, Any]:
        """Return a deep copy of the initial state."""
        return copy.deepcopy(dict(self.initial_state))

    def with_transformer(
        self, from_version: int, transformer: Transformer
    ) -> "SchemaRegistration":
        """Return a copy with one more transformer registered."""
        transformers = dict(self.transformers)
        transformers[from_version] = transformer
        return replace(self, transformers=transformers)


@dataclass(frozen=True)
class MigrationResult:
    """Tagged result of a migration.

    Exactly one of three outcomes: ``VALID`` (the merged blob passed
    validation), ``PARTIAL_RECOVERY`` (some fields were reset to defaults,
    listed in ``dropped_fields``) or ``RESET`` (the whole initial state was
    returned, ``reason`` says why).

    Attributes:
        outcome: Terminal state of the migration.
        state: Schema-valid state handed back to the caller.
        store_name: Store that was migrated.
        from_version: Version recorded with the persisted blob.
        to_version: Current version of the store.
        dropped_fields: Fields that fell back to their defaults.
        transformed: Whether a transformer was applied.
        reason: Reset cause, ``None`` unless the outcome is ``RESET``.
    """

    outcome: MigrationOutcome
    state: dict[str, Any]
    store_name: str
    from_version: Any = None
    to_version: int | None = None
    dropped_fields: tuple[str, ...] = ()
    transformed: bool = False
    reason: ResetReason | None = None

    @classmethod
    def valid(
        cls,
        config: SchemaRegistration,
        state: dict[str, Any],
        from_version: Any,
        transformed: bool = False,
    ) -> "MigrationResult":
        return cls(
            outcome=MigrationOutcome.VALID,
            state=state,
            store_name=config.store_name,
            from_version=from_version,
            to_version=config.current_version,
            transformed=transformed,
        )

    @classmethod
    def partial(
        cls,
        config: SchemaRegistration,
        state: dict[str, Any],
        from_version: Any,
        dropped_fields: list[str] | tuple[str, ...],
        transformed: bool = False,
    ) -> "MigrationResult":
        return cls(
            outcome=MigrationOutcome.PARTIAL_RECOVERY,
            state=state,
            store_name=config.store_name,
            from_version=from_version,
            to_version=config.current_version,
            dropped_fields=tuple(dropped_fields),
            transformed=transformed,
        )

    @classmethod
    def reset(
        cls,
        config: SchemaRegistration,
        from_version: Any,
        reason: ResetReason,
        transformed: bool = False,
    ) -> "MigrationResult":
        return cls(
            outcome=MigrationOutcome.RESET,
            state=config.fresh_initial_state(),
            store_name=config.store_name,
            from_version=from_version,
            to_version=config.current_version,
            transformed=transformed,
            reason=reason,
        )

    @property
    def is_valid(self) -> bool:
        return self.outcome is MigrationOutcome.VALID

    @property
    def is_reset(self) -> bool:
        return self.outcome is MigrationOutcome.RESET

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "store_name": self.store_name,
            "outcome": self.outcome.value,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "transformed": self.transformed,
            "dropped_fields": list(self.dropped_fields),
            "reason": self.reason.value if self.reason else None,
            "state": self.state,
        }
