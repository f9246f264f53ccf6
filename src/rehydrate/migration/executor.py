"""Migration executor.

Turns a persisted blob and its recorded version into state that satisfies
the store's current schema. The executor never raises for bad data: the
worst outcome of a stale or corrupted blob is a reset of some fields, or of
the whole store, to the registered defaults. Only a missing registration
(:class:`ConfigurationError`) propagates to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from rehydrate.migration.base import (
    FieldRecoveryError,
    MigrationFunction,
    MigrationResult,
    ResetReason,
    SchemaRegistration,
    TransformError,
    Transformer,
)
from rehydrate.migration.registry import SchemaRegistry

logger = logging.getLogger(__name__)


class MigrationExecutor:
    """Runs migrations against the registrations of a registry.

    Example:
        >>> executor = MigrationExecutor(registry)
        >>> executor.migrate("auth", {"logged_in_user": {"id": "42"}}, 1)
        {'user': {'id': '42'}, 'is_initialized': False}
        >>>
        >>> # Closure for a host store's rehydrate hook
        >>> migrate_auth = executor.get_migration_function("auth")
        >>> state = migrate_auth(persisted, persisted_version)
    """

    def __init__(self, registry: SchemaRegistry, debug: bool = False) -> None:
        """Initialize the executor.

        Args:
            registry: Registry holding the store configurations.
            debug: Emit debug traces for every store, not only those
                registered with ``debug=True``.
        """
        self._registry = registry
        self._debug = debug

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    def migrate(self, store_name: str, raw_blob: Any, raw_version: Any) -> dict[str, Any]:
        """Migrate a persisted blob and return schema-valid state.

        Raises:
            ConfigurationError: If the store is not registered.
        """
        return self.run(store_name, raw_blob, raw_version).state

    def get_migration_function(self, store_name: str) -> MigrationFunction:
        """Return a migration closure for a registered store.

        The registration is resolved now, so an unknown store fails at
        wiring time rather than on first use.

        Raises:
            ConfigurationError: If the store is not registered.
        """
        self._registry.require(store_name)

        def migration(raw_blob: Any, raw_version: Any) -> dict[str, Any]:
            return self.migrate(store_name, raw_blob, raw_version)

        return migration

    def run(self, store_name: str, raw_blob: Any, raw_version: Any) -> MigrationResult:
        """Migrate a persisted blob and describe how it went.

        Args:
            store_name: Registered store name.
            raw_blob: Value as loaded from storage (untrusted).
            raw_version: Version recorded alongside the blob.

        Returns:
            Tagged migration result; its state always satisfies the schema.

        Raises:
            ConfigurationError: If the store is not registered.
        """
        config = self._registry.require(store_name)
        return migrate_state(config, raw_blob, raw_version, debug=self._debug)


def migrate_state(
    config: SchemaRegistration,
    raw_blob: Any,
    raw_version: Any,
    *,
    debug: bool = False,
) -> MigrationResult:
    """Migrate a blob against a single registration.

    Decision tree: shape guard, version transform, merge over the initial
    state, whole-object validation, then field-level recovery.
    """
    name = config.display_name
    debug = debug or config.debug

    if debug:
        logger.debug(
            "%s: migrating from version %s to %d: %r",
            name,
            raw_version,
            config.current_version,
            raw_blob,
        )

    if not isinstance(raw_blob, Mapping):
        if debug:
            logger.debug("%s: no usable persisted state, using initial state", name)
        return MigrationResult.reset(config, raw_version, ResetReason.NO_USABLE_BLOB)

    transformed: Mapping[str, Any] = raw_blob
    applied = False

    if not _is_current(config, raw_version):
        transformer = _find_transformer(config, raw_version)
        if transformer is not None:
            try:
                transformed = _apply_transformer(config, transformer, raw_blob, raw_version)
            except TransformError as e:
                logger.error("%s: %s", name, e)
                return MigrationResult.reset(
                    config, raw_version, ResetReason.TRANSFORM_FAILED, transformed=True
                )
            applied = True
            if debug:
                logger.debug("%s: transformed state: %r", name, transformed)

    merged = {**config.initial_state, **transformed}

    ok, validated = config.schema.safe_validate(merged)
    if ok and validated is not None:
        if debug:
            logger.debug("%s: migration completed", name)
        return MigrationResult.valid(config, validated, raw_version, transformed=applied)

    if debug:
        logger.debug(
            "%s: validation failed, recovering field by field: %s",
            name,
            config.schema.errors(merged),
        )

    try:
        state, dropped = _recover_fields(config, merged)
    except Exception as e:
        if debug:
            logger.debug("%s: %s, using initial state", name, e)
        return MigrationResult.reset(
            config, raw_version, ResetReason.FIELD_RECOVERY_FAILED, transformed=applied
        )

    if debug:
        logger.debug("%s: partial migration, reset fields %s", name, dropped)
    return MigrationResult.partial(config, state, raw_version, dropped, transformed=applied)


def _is_current(config: SchemaRegistration, raw_version: Any) -> bool:
    # True == 1 in Python; a bool is never a version
    return not isinstance(raw_version, bool) and raw_version == config.current_version


def _find_transformer(config: SchemaRegistration, raw_version: Any) -> Transformer | None:
    if isinstance(raw_version, bool):
        return None
    try:
        return config.transformers.get(raw_version)
    except TypeError:
        # unhashable version
        return None


def _apply_transformer(
    config: SchemaRegistration,
    transformer: Transformer,
    raw_blob: Mapping[str, Any],
    raw_version: Any,
) -> Mapping[str, Any]:
    try:
        patch = transformer(raw_blob)
    except Exception as e:
        raise TransformError(config.store_name, raw_version, repr(e)) from e

    if not isinstance(patch, Mapping):
        raise TransformError(
            config.store_name,
            raw_version,
            f"transformer returned {type(patch).__name__}, expected a mapping",
        )
    return patch


def _recover_fields(
    config: SchemaRegistration,
    merged: Mapping[str, Any],
) -> tuple[dict[str, Any], list[str]]:
    """Keep the fields that validate on their own, default the rest.

    Raises:
        FieldRecoveryError: If the salvaged state is still not valid.
    """
    state = config.fresh_initial_state()
    dropped: list[str] = []

    for key in config.initial_state:
        validator = config.schema.field(key)
        if validator is None:
            # no validator: the default stands
            if merged.get(key) != config.initial_state[key]:
                dropped.append(key)
            continue
        try:
            state[key] = validator.validate(merged.get(key))
        except Exception:
            dropped.append(key)

    ok, validated = config.schema.safe_validate(state)
    if not ok or validated is None:
        raise FieldRecoveryError(
            config.store_name, "salvaged fields do not form a valid state"
        )
    return validated, dropped
