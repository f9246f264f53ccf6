"""Store runtime: load, migrate, hold and save one store's state.

A :class:`PersistedStore` is what an application store uses at cold start.
It loads the persisted envelope from a blob store, runs it through the
migration engine and keeps the resulting state in memory. Saving writes the
state back together with the current schema version.

Envelope format (what ``persist`` writes)::

    {"state": {...}, "version": 2}

A stored value without the envelope shape is migrated as a bare blob with
version 0.

Example:
    >>> from rehydrate.runtime import PersistedStore, hydrate_all
    >>>
    >>> auth = PersistedStore("auth", executor, blob_store)
    >>> ui = PersistedStore("ui", executor, blob_store)
    >>> results = hydrate_all([auth, ui])
    >>> auth.set_state({"is_initialized": True})
    >>> auth.persist()
    True
"""

from __future__ import annotations

import copy
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping

from rehydrate.migration.base import (
    MigrationFunction,
    MigrationResult,
    ResetReason,
    SchemaRegistration,
    StateValidationError,
)
from rehydrate.migration.executor import MigrationExecutor, migrate_state
from rehydrate.storage.base import BlobStore
from rehydrate.storage.keys import storage_key

logger = logging.getLogger(__name__)

STATE_KEY = "state"
VERSION_KEY = "version"
UNVERSIONED = 0

Partializer = Callable[[dict[str, Any]], Mapping[str, Any]]


def unwrap_envelope(stored: Any) -> tuple[Any, Any]:
    """Split a stored value into (blob, version).

    Args:
        stored: Value as loaded from the blob store.

    Returns:
        The persisted blob and its recorded version.
    """
    if (
        isinstance(stored, Mapping)
        and STATE_KEY in stored
        and VERSION_KEY in stored
        and len(stored) == 2
    ):
        return stored[STATE_KEY], stored[VERSION_KEY]
    return stored, UNVERSIONED


def wrap_envelope(state: Mapping[str, Any], version: int) -> dict[str, Any]:
    return {STATE_KEY: dict(state), VERSION_KEY: version}


class PersistedStore:
    """One application store backed by persisted, migrated state.

    Attributes:
        name: Registered store name.
        key: Storage key the envelope is kept under.
    """

    def __init__(
        self,
        name: str,
        executor: MigrationExecutor,
        blob_store: BlobStore,
        *,
        key: str | None = None,
        partialize: Partializer | None = None,
        migrate: MigrationFunction | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            name: Registered store name.
            executor: Migration executor holding the registration.
            blob_store: Where the envelope is loaded from and saved to.
            key: Storage key (defaults to ``store-<name>``).
            partialize: Selects the part of the state that gets persisted.
            migrate: Custom migration used instead of the registered one. Its
                output is checked against the schema like a current blob.

        Raises:
            ConfigurationError: If ``name`` is not registered.
        """
        self.name = name
        self.key = key or storage_key(name)
        self._executor = executor
        self._config: SchemaRegistration = executor.registry.require(name)
        self._blob_store = blob_store
        self._partialize = partialize
        self._custom_migrate = migrate
        self._lock = threading.RLock()
        self._state: dict[str, Any] = self._config.fresh_initial_state()
        self._hydrated = False
        self._last_result: MigrationResult | None = None

    @property
    def version(self) -> int:
        return self._config.current_version

    @property
    def state(self) -> dict[str, Any]:
        """Deep copy of the current in-memory state."""
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    @property
    def last_result(self) -> MigrationResult | None:
        return self._last_result

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return copy.deepcopy(self._state.get(key, default))

    def hydrate(self) -> MigrationResult:
        """Load, migrate and adopt the persisted state.

        Returns:
            Result of the migration.
        """
        stored = self._blob_store.load(self.key)
        blob, version = unwrap_envelope(stored)

        if self._custom_migrate is not None:
            result = self._run_custom(self._custom_migrate, blob, version)
        else:
            result = self._executor.run(self.name, blob, version)

        with self._lock:
            self._state = copy.deepcopy(result.state)
            self._hydrated = True
            self._last_result = result

        if result.is_valid:
            logger.debug("Hydrated store '%s' from version %s", self.name, version)
        else:
            logger.info(
                "Hydrated store '%s' with outcome %s (dropped: %s)",
                self.name,
                result.outcome.value,
                ", ".join(result.dropped_fields) or "-",
            )
        return result

    def _run_custom(
        self, migrate: MigrationFunction, blob: Any, version: Any
    ) -> MigrationResult:
        """Run a custom migration and check its output like a current blob."""
        try:
            migrated = migrate(blob, version)
        except Exception as e:
            logger.error("%s: custom migration from version %s failed: %r", self.name, version, e)
            return MigrationResult.reset(
                self._config, version, ResetReason.TRANSFORM_FAILED, transformed=True
            )

        result = migrate_state(self._config, migrated, self.version)
        if result.is_reset and result.reason is ResetReason.NO_USABLE_BLOB:
            result = replace(result, reason=ResetReason.TRANSFORM_FAILED)
        return replace(result, from_version=version, transformed=True)

    def set_state(self, patch: Mapping[str, Any]) -> dict[str, Any]:
        """Shallow-merge a patch into the state.

        Args:
            patch: Top-level keys to replace.

        Returns:
            The new state.

        Raises:
            StateValidationError: If the merged state violates the schema.
                The current state is left unchanged.
        """
        with self._lock:
            candidate = {**self._state, **patch}
            errors = self._config.schema.errors(candidate)
            if errors:
                raise StateValidationError(self.name, errors)
            self._state = self._config.schema.validate(candidate)
            return copy.deepcopy(self._state)

    def reset(self) -> dict[str, Any]:
        """Return the state to the registered initial state."""
        with self._lock:
            self._state = self._config.fresh_initial_state()
            return copy.deepcopy(self._state)

    def persist(self) -> bool:
        """Save the state under the current version.

        Returns:
            True if the blob store accepted the write.
        """
        with self._lock:
            state: Mapping[str, Any] = self._state
            if self._partialize is not None:
                state = self._partialize(dict(self._state))
            envelope = wrap_envelope(state, self.version)
        return self._blob_store.save(self.key, envelope)

    def clear_persisted(self) -> bool:
        """Delete the persisted envelope."""
        return self._blob_store.delete(self.key)

    def __repr__(self) -> str:
        return f"PersistedStore({self.name!r}, key={self.key!r}, hydrated={self._hydrated})"


def hydrate_all(
    stores: Iterable[PersistedStore],
    max_workers: int | None = None,
) -> dict[str, MigrationResult]:
    """Hydrate independent stores concurrently.

    Args:
        stores: Stores to hydrate; names must be distinct.
        max_workers: Thread pool size (defaults to one per store).

    Returns:
        Store name -> migration result.
    """
    stores = list(stores)
    if not stores:
        return {}

    names = [s.name for s in stores]
    if len(set(names)) != len(names):
        raise ValueError(f"Store names must be distinct: {names}")

    workers = max_workers or len(stores)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rehydrate") as pool:
        futures = {store.name: pool.submit(store.hydrate) for store in stores}
        return {name: future.result() for name, future in futures.items()}
