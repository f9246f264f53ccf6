"""Rehydrate - Versioned Migration of Persisted Store State."""

from rehydrate.migration import (
    ConfigurationError,
    FieldRecoveryError,
    FieldValidator,
    MigrationError,
    MigrationExecutor,
    MigrationFunction,
    MigrationOutcome,
    MigrationResult,
    RegistrationError,
    ResetReason,
    SchemaRegistration,
    SchemaRegistry,
    StateSchema,
    StateValidationError,
    TransformError,
    Transformer,
    create_store_schema,
    migrate_state,
    validate_field,
)
from rehydrate.report import MigrationReport
from rehydrate.runtime import PersistedStore, hydrate_all

# Storage backends
from rehydrate import storage
from rehydrate.storage import (
    AppMode,
    BlobStore,
    FileSystemBlobStore,
    MemoryBlobStore,
    get_blob_store,
    storage_key,
)

# Configuration
from rehydrate.config import Settings, configure_logging

__version__ = "0.1.0"

__all__ = [
    # Migration
    "SchemaRegistry",
    "SchemaRegistration",
    "MigrationExecutor",
    "MigrationResult",
    "MigrationOutcome",
    "ResetReason",
    "MigrationFunction",
    "Transformer",
    "migrate_state",
    # Schema
    "StateSchema",
    "FieldValidator",
    "create_store_schema",
    "validate_field",
    # Errors
    "MigrationError",
    "ConfigurationError",
    "RegistrationError",
    "TransformError",
    "FieldRecoveryError",
    "StateValidationError",
    # Runtime
    "PersistedStore",
    "hydrate_all",
    "MigrationReport",
    # Storage
    "storage",
    "AppMode",
    "BlobStore",
    "FileSystemBlobStore",
    "MemoryBlobStore",
    "get_blob_store",
    "storage_key",
    # Configuration
    "Settings",
    "configure_logging",
]
