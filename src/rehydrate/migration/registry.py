"""Schema registry for store migrations.

The registry maps store names to their :class:`SchemaRegistration`. It is a
plain value: construct one at startup and hand it to every component that
needs it. All registrations are expected to happen during bootstrap, before
the first migration runs.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterator, Mapping

from rehydrate.migration.base import (
    ConfigurationError,
    SchemaRegistration,
    Transformer,
)
from rehydrate.migration.schema import StateSchema

logger = logging.getLogger(__name__)


class SchemaRegistry:
    """Registry of store migration configurations.

    Example:
        >>> registry = SchemaRegistry()
        >>>
        >>> registry.store(
        ...     "auth",
        ...     schema=auth_schema,
        ...     initial_state={"user": None, "is_initialized": False},
        ...     current_version=2,
        ... )
        >>>
        >>> @registry.transformer("auth", 1)
        ... def rename_user(raw: dict) -> dict:
        ...     return {"user": raw.get("logged_in_user")}
    """

    def __init__(self) -> None:
        """Initialize the registry."""
        self._configs: dict[str, SchemaRegistration] = {}

    def register(self, store_name: str, config: SchemaRegistration) -> SchemaRegistration:
        """Register a store configuration.

        An existing registration under the same name is replaced; the last
        writer wins and a warning is logged.

        Args:
            store_name: Unique name of the store.
            config: Migration configuration.

        Returns:
            The stored registration.
        """
        if config.store_name != store_name:
            config = replace(config, store_name=store_name)

        if store_name in self._configs:
            logger.warning("Store '%s' is already registered, overwriting", store_name)

        self._configs[store_name] = config

        if config.debug:
            logger.debug(
                "Store '%s' registered with version %d",
                config.display_name,
                config.current_version,
            )
        return config

    def store(
        self,
        store_name: str,
        *,
        schema: StateSchema,
        initial_state: Mapping[str, Any],
        current_version: int,
        transformers: Mapping[int, Transformer] | None = None,
        debug: bool = False,
        label: str | None = None,
    ) -> SchemaRegistration:
        """Build a registration from keyword arguments and register it."""
        config = SchemaRegistration(
            store_name=store_name,
            schema=schema,
            initial_state=initial_state,
            current_version=current_version,
            transformers=dict(transformers or {}),
            debug=debug,
            label=label,
        )
        return self.register(store_name, config)

    def transformer(
        self,
        store_name: str,
        from_version: int,
    ) -> Callable[[Transformer], Transformer]:
        """Decorator to add a transformer to a registered store.

        Args:
            store_name: Name of an already registered store.
            from_version: Persisted version the transformer converts from.

        Raises:
            ConfigurationError: If the store is not registered.
        """

        def decorator(func: Transformer) -> Transformer:
            config = self.require(store_name)
            self._configs[store_name] = config.with_transformer(from_version, func)
            logger.debug(
                "Registered transformer for store '%s' from version %s",
                store_name,
                from_version,
            )
            return func

        return decorator

    def get_config(self, store_name: str) -> SchemaRegistration | None:
        """Get a registration, or None if the store is unknown."""
        return self._configs.get(store_name)

    def require(self, store_name: str) -> SchemaRegistration:
        """Get a registration.

        Raises:
            ConfigurationError: If the store is not registered.
        """
        config = self._configs.get(store_name)
        if config is None:
            raise ConfigurationError(store_name)
        return config

    def unregister(self, store_name: str) -> bool:
        """Remove a registration.

        Returns:
            True if removed, False if not found.
        """
        if store_name in self._configs:
            del self._configs[store_name]
            return True
        return False

    def list_stores(self) -> list[str]:
        return sorted(self._configs)

    def clear(self) -> None:
        """Clear all registrations."""
        self._configs.clear()

    def __len__(self) -> int:
        return len(self._configs)

    def __contains__(self, store_name: object) -> bool:
        return store_name in self._configs

    def __iter__(self) -> Iterator[str]:
        return iter(self.list_stores())
