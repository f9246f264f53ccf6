"""Store schemas and per-field validation.

A :class:`StateSchema` pairs a pydantic model describing the whole store
with an explicit map of field validators. The field map is built once when
the schema is defined, so field-level recovery never has to take the model
apart at migration time.

Example:
    >>> from typing import Any, Optional
    >>> from rehydrate.migration.schema import create_store_schema
    >>>
    >>> auth_schema = create_store_schema(
    ...     "AuthState",
    ...     user=Optional[dict[str, Any]],
    ...     is_initialized=bool,
    ... )
    >>> auth_schema.validate({"user": None, "is_initialized": False})
    {'user': None, 'is_initialized': False}
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Mapping, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    PydanticUserError,
    TypeAdapter,
    ValidationError,
    create_model,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _make_adapter(annotation: Any, strict: bool) -> TypeAdapter[Any]:
    if not strict:
        return TypeAdapter(annotation)
    try:
        return TypeAdapter(annotation, config=ConfigDict(strict=True))
    except PydanticUserError:
        # models, dataclasses and TypedDicts carry their own config
        return TypeAdapter(annotation)


class FieldValidator:
    """Validator for a single top-level field of a store.

    Strict validators take values as stored: ``"true"`` or ``1`` is not a
    bool and ``"5"`` is not an int. Model and dataclass annotations keep
    their own configuration.

    Example:
        >>> validator = FieldValidator("is_initialized", bool, strict=True)
        >>> validator.is_valid(True)
        True
        >>> validator.is_valid("true")
        False
    """

    def __init__(self, name: str, annotation: Any, strict: bool = False) -> None:
        self.name = name
        self.annotation = annotation
        self.strict = strict
        self._adapter: TypeAdapter[Any] = _make_adapter(annotation, strict)

    def validate(self, value: Any) -> Any:
        """Validate a value and return its plain (JSON-like) form.

        Raises:
            pydantic.ValidationError: If the value does not match.
        """
        return self._adapter.dump_python(self._adapter.validate_python(value))

    def is_valid(self, value: Any) -> bool:
        try:
            self._adapter.validate_python(value)
        except ValidationError:
            return False
        return True

    def __repr__(self) -> str:
        return f"FieldValidator({self.name!r}, {self.annotation!r}, strict={self.strict})"


class StateSchema:
    """Whole-object schema plus explicit per-field validators.

    Attributes:
        model: Pydantic model describing the full state.
        fields: Field name -> validator, used for field-level recovery.
    """

    def __init__(
        self,
        model: type[BaseModel],
        fields: Mapping[str, FieldValidator],
    ) -> None:
        self.model = model
        self.fields: dict[str, FieldValidator] = dict(fields)

    @classmethod
    def from_model(cls, model: type[BaseModel]) -> "StateSchema":
        """Build a schema whose field validators mirror the model's fields.

        Constraint metadata (``Field(gt=0)``, ``max_length`` ...) is carried
        over; model-level and ``@field_validator`` hooks are not, pass an
        explicit field map to the constructor when a field needs them.
        Field validators are strict when the model is
        (``model_config["strict"]``).
        """
        strict = bool(model.model_config.get("strict", False))
        fields: dict[str, FieldValidator] = {}
        for name, info in model.model_fields.items():
            annotation = info.annotation
            if info.metadata:
                annotation = Annotated[(annotation, *info.metadata)]
            fields[name] = FieldValidator(name, annotation, strict=strict)
        return cls(model, fields)

    @property
    def name(self) -> str:
        return self.model.__name__

    def field(self, name: str) -> FieldValidator | None:
        """Get the validator for a field, or None if there is none."""
        return self.fields.get(name)

    def validate(self, data: Any) -> dict[str, Any]:
        """Validate a whole state object.

        Returns:
            The validated state as a plain dictionary.

        Raises:
            pydantic.ValidationError: If validation fails.
        """
        return self.model.model_validate(data).model_dump()

    def safe_validate(self, data: Any) -> tuple[bool, dict[str, Any] | None]:
        """Validate without raising.

        Returns:
            Tuple of (success, validated state or None).
        """
        try:
            return True, self.validate(data)
        except Exception:
            return False, None

    def errors(self, data: Any) -> list[str]:
        """List human-readable validation errors (empty if valid)."""
        try:
            self.model.model_validate(data)
        except ValidationError as e:
            return [
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            ]
        except Exception as e:
            return [f"<root>: {e!r}"]
        return []

    def __repr__(self) -> str:
        return f"StateSchema({self.name}, fields={list(self.fields)})"


def create_store_schema(model_name: str = "StoreState", **fields: Any) -> StateSchema:
    """Create a store schema from field annotations.

    Each keyword is a field name mapped to either an annotation (required
    field) or an ``(annotation, default)`` tuple. Unknown keys in validated
    data are ignored, so blobs that still carry retired keys validate.
    Validation is strict: stored values are not coerced (``"true"`` is not a
    bool), while nested models are still built from plain dicts.

    Args:
        model_name: Name of the generated pydantic model.
        **fields: Field definitions.

    Returns:
        StateSchema wrapping the generated model.
    """
    definitions: dict[str, Any] = {}
    for name, definition in fields.items():
        if isinstance(definition, tuple):
            definitions[name] = definition
        else:
            definitions[name] = (definition, ...)

    model = create_model(
        model_name,
        __config__=ConfigDict(extra="ignore", strict=True),
        **definitions,
    )
    return StateSchema.from_model(model)


def validate_field(value: Any, field_schema: Any, default: T) -> T:
    """Validate a single value, falling back to a default.

    Never raises: any failure while checking the value (including a
    ``field_schema`` that cannot be turned into a validator) returns
    ``default``.

    Args:
        value: The value to validate.
        field_schema: A FieldValidator, TypeAdapter, pydantic model class or
            plain annotation. Plain annotations are checked strictly.
        default: Value returned when validation fails.

    Returns:
        The validated value or the default.
    """
    try:
        if isinstance(field_schema, FieldValidator):
            return field_schema.validate(value)
        if isinstance(field_schema, TypeAdapter):
            return field_schema.validate_python(value)
        if isinstance(field_schema, type) and issubclass(field_schema, BaseModel):
            return field_schema.model_validate(value)  # type: ignore[return-value]
        return _make_adapter(field_schema, strict=True).validate_python(value)
    except Exception as e:
        logger.debug("Field validation failed, using default: %s", e)
        return default
