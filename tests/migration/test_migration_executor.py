"""Tests for the migration executor."""

from __future__ import annotations

import copy
import logging
from typing import Any, Literal, Optional

import pytest
from pydantic import BaseModel, Field, model_validator

from rehydrate.migration import (
    ConfigurationError,
    FieldValidator,
    MigrationExecutor,
    MigrationOutcome,
    ResetReason,
    SchemaRegistration,
    SchemaRegistry,
    StateSchema,
    create_store_schema,
    migrate_state,
)

AUTH_INITIAL = {"user": None, "is_initialized": False}


class UserPreferences(BaseModel):
    theme: Literal["light", "dark", "system"] = "system"
    language: str = "en"


class SettingsState(BaseModel):
    notifications: bool = True
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    last_screens: list[str] = Field(default_factory=list, max_length=3)


# =============================================================================
# Basic behavior
# =============================================================================


class TestMigrate:
    """Tests for MigrationExecutor.migrate."""

    def test_unregistered_store_raises(self, executor: MigrationExecutor) -> None:
        with pytest.raises(ConfigurationError, match="not registered"):
            executor.migrate("missing", {}, 1)

    @pytest.mark.parametrize("blob", [None, 0, 42, "persisted", True, 1.5, [1, 2], []])
    def test_unusable_blob_returns_initial_state(
        self, executor: MigrationExecutor, blob: Any
    ) -> None:
        assert executor.migrate("auth", blob, 2) == AUTH_INITIAL

    def test_pass_through_on_matching_version(self, executor: MigrationExecutor) -> None:
        blob = {"user": {"id": "7", "name": "Ada"}, "is_initialized": True}

        assert executor.migrate("auth", blob, 2) == blob

    def test_missing_keys_take_defaults(self, executor: MigrationExecutor) -> None:
        state = executor.migrate("ui", {"theme_mode": "dark"}, 1)

        assert state == {"theme_mode": "dark", "is_menu_open": False, "is_loading": False}

    def test_unknown_keys_are_dropped(self, executor: MigrationExecutor) -> None:
        state = executor.migrate("ui", {"theme_mode": "light", "legacy_flag": 1}, 1)

        assert "legacy_flag" not in state

    def test_result_is_not_aliased_to_initial_state(
        self, registry: SchemaRegistry, executor: MigrationExecutor
    ) -> None:
        initial = copy.deepcopy(dict(registry.require("auth").initial_state))

        state = executor.migrate("auth", None, 0)
        state["is_initialized"] = True

        assert dict(registry.require("auth").initial_state) == initial

    def test_unhashable_version_is_treated_as_mismatch(
        self, executor: MigrationExecutor
    ) -> None:
        blob = {"user": None, "is_initialized": True}

        assert executor.migrate("auth", blob, ["not", "a", "version"]) == blob

    def test_version_without_transformer_keeps_blob(
        self, executor: MigrationExecutor
    ) -> None:
        blob = {"user": {"id": "1"}, "is_initialized": True}

        assert executor.migrate("auth", blob, 0) == blob


# =============================================================================
# Transformers
# =============================================================================


class TestTransformers:
    """Tests for version transformers."""

    def test_end_to_end_auth_rename(self, executor: MigrationExecutor) -> None:
        state = executor.migrate("auth", {"logged_in_user": {"id": "42"}}, 1)

        assert state == {"user": {"id": "42"}, "is_initialized": False}

    def test_transformer_output_merged_with_defaults(self) -> None:
        registry = SchemaRegistry()
        registry.store(
            "profile",
            schema=create_store_schema(a=int, b=str),
            initial_state={"a": 0, "b": ""},
            current_version=2,
            transformers={1: lambda raw: {"b": raw["legacy_b"]}},
        )

        state = MigrationExecutor(registry).migrate("profile", {"legacy_b": "hi"}, 1)

        assert state == {"a": 0, "b": "hi"}

    def test_transformer_not_applied_on_current_version(self) -> None:
        calls: list[Any] = []

        def transformer(raw: Any) -> dict[str, Any]:
            calls.append(raw)
            return {}

        registry = SchemaRegistry()
        registry.store(
            "auth",
            schema=create_store_schema(user=Optional[dict[str, Any]], is_initialized=bool),
            initial_state=AUTH_INITIAL,
            current_version=2,
            transformers={1: transformer},
        )

        MigrationExecutor(registry).migrate("auth", {"is_initialized": True}, 2)

        assert calls == []

    def test_bool_version_is_not_a_version(self) -> None:
        calls: list[Any] = []

        def transformer(raw: Any) -> dict[str, Any]:
            calls.append(raw)
            return {"is_initialized": True}

        registry = SchemaRegistry()
        registry.store(
            "auth",
            schema=create_store_schema(user=Optional[dict[str, Any]], is_initialized=bool),
            initial_state=AUTH_INITIAL,
            current_version=2,
            transformers={1: transformer},
        )

        result = MigrationExecutor(registry).run("auth", {"user": None}, True)

        assert calls == []
        assert result.transformed is False
        assert result.from_version is True
        assert result.state == AUTH_INITIAL

    def test_transformer_failure_resets(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        def broken(raw: Any) -> dict[str, Any]:
            return {"user": raw["logged_in_user"]["id"]}

        registry = SchemaRegistry()
        registry.store(
            "auth",
            schema=create_store_schema(user=Optional[dict[str, Any]], is_initialized=bool),
            initial_state=AUTH_INITIAL,
            current_version=2,
            transformers={1: broken},
        )
        executor = MigrationExecutor(registry)

        with caplog.at_level(logging.ERROR, logger="rehydrate"):
            result = executor.run("auth", {"is_initialized": True}, 1)

        assert result.outcome is MigrationOutcome.RESET
        assert result.reason is ResetReason.TRANSFORM_FAILED
        assert result.transformed is True
        assert result.state == AUTH_INITIAL
        assert "from version 1 failed" in caplog.text

    def test_non_mapping_transformer_output_resets(self) -> None:
        registry = SchemaRegistry()
        registry.store(
            "auth",
            schema=create_store_schema(user=Optional[dict[str, Any]], is_initialized=bool),
            initial_state=AUTH_INITIAL,
            current_version=2,
            transformers={1: lambda raw: None},
        )

        result = MigrationExecutor(registry).run("auth", {"is_initialized": True}, 1)

        assert result.reason is ResetReason.TRANSFORM_FAILED
        assert result.state == AUTH_INITIAL

    def test_transformers_are_not_chained(self) -> None:
        """Only the transformer keyed by the recorded version runs."""
        registry = SchemaRegistry()
        registry.store(
            "counter",
            schema=create_store_schema(count=int, label=(str, "")),
            initial_state={"count": 0, "label": ""},
            current_version=3,
            transformers={
                1: lambda raw: {"count": raw["n"]},
                2: lambda raw: {"label": "from-v2"},
            },
        )

        state = MigrationExecutor(registry).migrate("counter", {"n": 5}, 1)

        assert state == {"count": 5, "label": ""}


# =============================================================================
# Field-level recovery
# =============================================================================


class TestFieldRecovery:
    """Tests for field-by-field salvage."""

    def test_invalid_field_falls_back_to_default(self, executor: MigrationExecutor) -> None:
        result = executor.run("auth", {"user": {"id": "42"}, "is_initialized": "not-a-bool"}, 2)

        assert result.outcome is MigrationOutcome.PARTIAL_RECOVERY
        assert result.state == {"user": {"id": "42"}, "is_initialized": False}
        assert result.dropped_fields == ("is_initialized",)

    @pytest.mark.parametrize("value", ["yes", "true", 1])
    def test_coercible_value_is_not_accepted(
        self, executor: MigrationExecutor, value: Any
    ) -> None:
        result = executor.run("auth", {"user": None, "is_initialized": value}, 2)

        assert result.outcome is MigrationOutcome.PARTIAL_RECOVERY
        assert result.state["is_initialized"] is False
        assert result.dropped_fields == ("is_initialized",)

    def test_every_field_invalid(self, executor: MigrationExecutor) -> None:
        result = executor.run(
            "ui",
            {"theme_mode": "neon", "is_menu_open": "maybe", "is_loading": {}},
            1,
        )

        assert result.outcome is MigrationOutcome.PARTIAL_RECOVERY
        assert result.state == {
            "theme_mode": "system",
            "is_menu_open": False,
            "is_loading": False,
        }
        assert set(result.dropped_fields) == {"theme_mode", "is_menu_open", "is_loading"}

    def test_nested_model_fields(self) -> None:
        registry = SchemaRegistry()
        registry.register(
            "settings",
            SchemaRegistration(
                store_name="settings",
                schema=StateSchema.from_model(SettingsState),
                initial_state=SettingsState().model_dump(),
                current_version=1,
            ),
        )
        blob = {
            "notifications": False,
            "preferences": {"theme": "dark", "language": "de"},
            "last_screens": ["home", "feed", "profile", "settings"],
        }

        result = MigrationExecutor(registry).run("settings", blob, 1)

        assert result.outcome is MigrationOutcome.PARTIAL_RECOVERY
        assert result.state == {
            "notifications": False,
            "preferences": {"theme": "dark", "language": "de"},
            "last_screens": [],
        }
        assert result.dropped_fields == ("last_screens",)

    def test_field_without_validator_keeps_default(self) -> None:
        model_schema = create_store_schema(count=int, label=str)
        # only "count" can be checked on its own
        schema = StateSchema(model_schema.model, {"count": FieldValidator("count", int)})
        registry = SchemaRegistry()
        registry.store(
            "counter",
            schema=schema,
            initial_state={"count": 0, "label": "none"},
            current_version=1,
        )

        result = MigrationExecutor(registry).run("counter", {"count": "x", "label": "kept?"}, 1)

        assert result.outcome is MigrationOutcome.PARTIAL_RECOVERY
        assert result.state == {"count": 0, "label": "none"}
        assert set(result.dropped_fields) == {"count", "label"}

    def test_invalid_salvage_resets(self) -> None:
        class Range(BaseModel):
            low: int = 0
            high: int = 10

            @model_validator(mode="after")
            def check_order(self) -> "Range":
                if self.low > self.high:
                    raise ValueError("low must not exceed high")
                return self

        registry = SchemaRegistry()
        # a field map that accepts anything leaves the salvaged state invalid
        registry.store(
            "range",
            schema=StateSchema(
                Range,
                {"low": FieldValidator("low", Any), "high": FieldValidator("high", Any)},
            ),
            initial_state={"low": 0, "high": 10},
            current_version=1,
        )

        result = MigrationExecutor(registry).run("range", {"low": 50, "high": 5}, 1)

        assert result.outcome is MigrationOutcome.RESET
        assert result.reason is ResetReason.FIELD_RECOVERY_FAILED
        assert result.state == {"low": 0, "high": 10}

    def test_debug_traces(
        self, registry: SchemaRegistry, caplog: pytest.LogCaptureFixture
    ) -> None:
        executor = MigrationExecutor(registry, debug=True)

        with caplog.at_level(logging.DEBUG, logger="rehydrate"):
            executor.migrate("auth", {"user": {"id": "42"}, "is_initialized": "?"}, 2)

        assert "recovering field by field" in caplog.text
        assert "partial migration" in caplog.text

    def test_no_debug_traces_by_default(
        self, executor: MigrationExecutor, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.DEBUG, logger="rehydrate"):
            executor.migrate("auth", {"user": None, "is_initialized": True}, 2)

        assert "migrating from version" not in caplog.text


# =============================================================================
# Properties
# =============================================================================


class TestMigrationProperties:
    """Properties that hold for every input."""

    BLOBS: list[Any] = [
        None,
        "garbage",
        17,
        [],
        {},
        {"user": {"id": "42"}, "is_initialized": True},
        {"user": "not-a-dict", "is_initialized": True},
        {"user": {"id": "1"}, "is_initialized": "nope"},
        {"logged_in_user": {"id": "9"}},
        {"logged_in_user": None, "extra": [1, 2, 3]},
    ]
    VERSIONS: list[Any] = [0, 1, 2, 3, None, "2", -1]

    def test_result_always_satisfies_schema(
        self, registry: SchemaRegistry, executor: MigrationExecutor
    ) -> None:
        schema = registry.require("auth").schema
        for blob in self.BLOBS:
            for version in self.VERSIONS:
                state = executor.migrate("auth", blob, version)
                assert schema.errors(state) == [], (blob, version)

    def test_idempotence(self, executor: MigrationExecutor) -> None:
        for blob in self.BLOBS:
            for version in self.VERSIONS:
                once = executor.migrate("auth", blob, version)
                assert executor.migrate("auth", once, 2) == once, (blob, version)

    def test_never_raises_for_bad_data(self, executor: MigrationExecutor) -> None:
        class Unserializable:
            pass

        for blob in [*self.BLOBS, {"user": Unserializable()}, {1: 2}, object()]:
            executor.migrate("auth", blob, 1)
            executor.migrate("auth", blob, 2)


# =============================================================================
# Migration functions and results
# =============================================================================


class TestGetMigrationFunction:
    """Tests for MigrationExecutor.get_migration_function."""

    def test_returns_callable(self, executor: MigrationExecutor) -> None:
        migrate_auth = executor.get_migration_function("auth")

        assert migrate_auth({"logged_in_user": {"id": "42"}}, 1) == {
            "user": {"id": "42"},
            "is_initialized": False,
        }

    def test_unknown_store_fails_at_creation(self, executor: MigrationExecutor) -> None:
        with pytest.raises(ConfigurationError):
            executor.get_migration_function("missing")

    def test_uses_current_registration(
        self, registry: SchemaRegistry, executor: MigrationExecutor
    ) -> None:
        migrate_auth = executor.get_migration_function("auth")
        registry.store(
            "auth",
            schema=create_store_schema(user=Optional[dict[str, Any]], is_initialized=bool),
            initial_state={"user": None, "is_initialized": True},
            current_version=3,
        )

        assert migrate_auth(None, 0) == {"user": None, "is_initialized": True}


class TestMigrationResult:
    """Tests for MigrationResult values produced by run()."""

    def test_valid_result(self, executor: MigrationExecutor) -> None:
        result = executor.run("auth", {"user": None, "is_initialized": True}, 2)

        assert result.is_valid
        assert not result.is_reset
        assert result.from_version == 2
        assert result.to_version == 2
        assert result.transformed is False
        assert result.reason is None

    def test_transformed_flag(self, executor: MigrationExecutor) -> None:
        result = executor.run("auth", {"logged_in_user": {"id": "42"}}, 1)

        assert result.is_valid
        assert result.transformed is True
        assert result.from_version == 1

    def test_reset_result(self, executor: MigrationExecutor) -> None:
        result = executor.run("auth", None, 0)

        assert result.is_reset
        assert result.reason is ResetReason.NO_USABLE_BLOB

    def test_to_dict(self, executor: MigrationExecutor) -> None:
        result = executor.run("auth", {"user": {"id": "1"}, "is_initialized": 7}, 2)

        data = result.to_dict()

        assert data["outcome"] == "partial_recovery"
        assert data["dropped_fields"] == ["is_initialized"]
        assert data["reason"] is None
        assert data["state"] == {"user": {"id": "1"}, "is_initialized": False}

    def test_migrate_state_without_registry(self) -> None:
        config = SchemaRegistration(
            store_name="auth",
            schema=create_store_schema(user=Optional[dict[str, Any]], is_initialized=bool),
            initial_state=AUTH_INITIAL,
            current_version=1,
        )

        result = migrate_state(config, {"is_initialized": True}, 1)

        assert result.state == {"user": None, "is_initialized": True}
