"""Shared fixtures for rehydrate tests."""

from __future__ import annotations

import logging
from typing import Any, Generator, Literal, Optional

import pytest

from rehydrate.migration import (
    MigrationExecutor,
    SchemaRegistry,
    StateSchema,
    create_store_schema,
)
from rehydrate.storage import MemoryBlobStore


# =============================================================================
# Schemas
# =============================================================================


AUTH_INITIAL_STATE: dict[str, Any] = {"user": None, "is_initialized": False}

UI_INITIAL_STATE: dict[str, Any] = {
    "theme_mode": "system",
    "is_menu_open": False,
    "is_loading": False,
}


def make_auth_schema() -> StateSchema:
    return create_store_schema(
        "AuthState",
        user=Optional[dict[str, Any]],
        is_initialized=bool,
    )


def make_ui_schema() -> StateSchema:
    return create_store_schema(
        "UIState",
        theme_mode=Literal["light", "dark", "system"],
        is_menu_open=bool,
        is_loading=bool,
    )


def rename_logged_in_user(raw: dict[str, Any]) -> dict[str, Any]:
    """Version 1 auth blobs kept the user under ``logged_in_user``."""
    return {"user": raw.get("logged_in_user")}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Undo handlers and levels set by configure_logging."""
    package_logger = logging.getLogger("rehydrate")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
    package_logger.setLevel(level)


@pytest.fixture
def auth_schema() -> StateSchema:
    return make_auth_schema()


@pytest.fixture
def registry() -> SchemaRegistry:
    """Registry with the ``auth`` (version 2) and ``ui`` (version 1) stores."""
    registry = SchemaRegistry()
    registry.store(
        "auth",
        schema=make_auth_schema(),
        initial_state=AUTH_INITIAL_STATE,
        current_version=2,
        transformers={1: rename_logged_in_user},
    )
    registry.store(
        "ui",
        schema=make_ui_schema(),
        initial_state=UI_INITIAL_STATE,
        current_version=1,
    )
    return registry


@pytest.fixture
def executor(registry: SchemaRegistry) -> MigrationExecutor:
    return MigrationExecutor(registry)


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()
