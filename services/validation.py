"""
Parameter validation for the external functions.

Each function declares the shape of its parameters as a tree of
ExternalValue, ExternalSingleStructure and ExternalMultipleStructure
descriptions. A structure is compiled into a pydantic model, the raw
parameter tree is validated against it, and the result is normalized back
into plain dicts and lists:

- unknown keys are rejected
- absent optional fields take their declared default
- absent optional fields without a default are left out of the result,
  so "not sent" stays distinguishable from "sent empty"
"""
import copy
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import ConfigDict, StringConstraints, create_model
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError


class _Unset:
    """Marker for fields declared without a default."""

    def __repr__(self):
        return "UNSET"


UNSET = _Unset()


class ParamType(str, Enum):
    """Primitive parameter types."""
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    TEXT = "text"
    RAW = "raw"
    COMPONENT = "component"
    ALPHANUMEXT = "alphanumext"


# Frankenstyle component names, e.g. "mod_forum" or "core"
COMPONENT_PATTERN = r"^[a-z]+(_[a-z][a-z0-9_]*)?[a-z0-9]+$"
ALPHANUMEXT_PATTERN = r"^[a-zA-Z0-9_-]*$"

_PRIMITIVES = {
    ParamType.INT: int,
    ParamType.FLOAT: float,
    ParamType.BOOL: bool,
    ParamType.TEXT: str,
    ParamType.RAW: str,
    ParamType.COMPONENT: Annotated[str, StringConstraints(pattern=COMPONENT_PATTERN)],
    ParamType.ALPHANUMEXT: Annotated[str, StringConstraints(pattern=ALPHANUMEXT_PATTERN)],
}


class ExternalDescription:
    """Base class of every node in a parameter description."""

    def __init__(self, description: str = "", required: bool = True, default: Any = UNSET):
        self.description = description
        self.required = required
        self.default = default

    @property
    def has_default(self) -> bool:
        return self.default is not UNSET

    @property
    def optional(self) -> bool:
        return not self.required or self.has_default

    def annotation(self, name: str) -> Any:
        raise NotImplementedError


class ExternalValue(ExternalDescription):
    """A primitive value."""

    def __init__(
        self,
        type: ParamType,
        description: str = "",
        required: bool = True,
        default: Any = UNSET,
        allow_null: bool = False,
    ):
        super().__init__(description, required, default)
        self.type = type
        self.allow_null = allow_null

    def annotation(self, name: str) -> Any:
        annotation = _PRIMITIVES[self.type]
        if self.allow_null:
            return Optional[annotation]
        return annotation


class ExternalMultipleStructure(ExternalDescription):
    """A list whose entries all share one description."""

    def __init__(
        self,
        content: ExternalDescription,
        description: str = "",
        required: bool = True,
        default: Any = UNSET,
    ):
        super().__init__(description, required, default)
        self.content = content

    def annotation(self, name: str) -> Any:
        return List[self.content.annotation(f"{name}_item")]


class ExternalSingleStructure(ExternalDescription):
    """A structure with named fields."""

    def __init__(
        self,
        fields: Dict[str, ExternalDescription],
        description: str = "",
        required: bool = True,
        default: Any = UNSET,
    ):
        super().__init__(description, required, default)
        self.fields = fields
        self._model = None

    def annotation(self, name: str) -> Any:
        return self.model(name)

    def model(self, name: str = "Parameters") -> type:
        """Compile (once) the pydantic model for this structure."""
        if self._model is None:
            definitions = {}
            for key, field in self.fields.items():
                annotation = field.annotation(f"{name}_{key}")
                if field.optional:
                    definitions[key] = (Optional[annotation], None)
                else:
                    definitions[key] = (annotation, ...)
            self._model = create_model(
                name,
                __config__=ConfigDict(extra="forbid"),
                **definitions,
            )
        return self._model


def _normalize(description: ExternalDescription, value: Any, path: str) -> Any:
    if isinstance(description, ExternalSingleStructure):
        result = {}
        for key, field in description.fields.items():
            field_path = f"{path}.{key}" if path else key
            if key not in value.model_fields_set:
                if field.has_default:
                    result[key] = copy.deepcopy(field.default)
                continue
            item = getattr(value, key)
            if item is None:
                if isinstance(field, ExternalValue) and field.allow_null:
                    result[key] = None
                    continue
                raise ValidationError("Null value is not allowed", field=field_path)
            result[key] = _normalize(field, item, field_path)
        return result

    if isinstance(description, ExternalMultipleStructure):
        return [
            _normalize(description.content, item, f"{path}[{index}]")
            for index, item in enumerate(value)
        ]

    return value


def _error_field(loc) -> Optional[str]:
    field = ""
    for part in loc:
        if isinstance(part, int):
            field += f"[{part}]"
        else:
            field = f"{field}.{part}" if field else str(part)
    return field or None


def validate_parameters(description: ExternalSingleStructure, params: Any) -> Dict[str, Any]:
    """
    Validate a raw parameter tree against its description.

    Args:
        description: The declared parameter structure
        params: The parameters as received from the caller

    Returns:
        The normalized parameter tree

    Raises:
        ValidationError: On the first missing, unknown or mistyped field
    """
    if not isinstance(params, dict):
        raise ValidationError("Only arrays accepted. The bad value is: " + repr(params))

    try:
        instance = description.model().model_validate(params)
    except PydanticValidationError as e:
        error = e.errors()[0]
        raise ValidationError(error["msg"], field=_error_field(error["loc"]))

    return _normalize(description, instance, "")
