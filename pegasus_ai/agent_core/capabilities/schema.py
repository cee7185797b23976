from __future__ import annotations

"""Structural parameter schemas for capabilities.

Every capability declares a ``ParameterSchema`` wrapping a Pydantic model
class. The dispatcher validates raw parameters against it before acquiring
a concurrency permit, and the registry exports its JSON Schema so the
planner knows what it may call.

External tools (MCP) describe their inputs as JSON Schema objects;
``ParameterSchema.from_json_schema`` translates those into a Pydantic model
so both kinds of capability validate the same way.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, create_model

_JSON_TYPES: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": list,
    "object": dict,
    "null": type(None),
}


class _OpenParams(BaseModel):
    model_config = ConfigDict(extra="allow")


class _EmptyParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ParameterSchema:
    """Validator plus JSON Schema export for one capability's inputs."""

    def __init__(self, model: Type[BaseModel], *, exclude_unset: bool = False) -> None:
        self._model = model
        self._exclude_unset = exclude_unset

    @property
    def model(self) -> Type[BaseModel]:
        return self._model

    def validate(self, raw: Any) -> Dict[str, Any]:
        """Validate ``raw`` and return the normalized parameter dict.

        Raises:
            pydantic.ValidationError: If ``raw`` does not match the schema.
        """
        if raw is None:
            raw = {}
        return self._model.model_validate(raw).model_dump(exclude_unset=self._exclude_unset)

    def to_json_schema(self) -> Dict[str, Any]:
        return self._model.model_json_schema()

    @classmethod
    def from_json_schema(cls, name: str, schema: Optional[Dict[str, Any]]) -> "ParameterSchema":
        """Build a schema from a JSON Schema ``object`` description.

        Only the structural subset tools actually publish is translated:
        property types, ``required``, ``default``, ``description`` and
        ``enum``. Unknown keywords are ignored and extra properties are
        allowed through, leaving stricter checks to the remote tool.
        """
        schema = schema or {}
        properties: Dict[str, Any] = dict(schema.get("properties") or {})
        required = set(schema.get("required") or [])

        fields: Dict[str, Tuple[Any, Any]] = {}
        for prop_name, prop in properties.items():
            annotation = _annotation_for(prop if isinstance(prop, dict) else {})
            description = prop.get("description") if isinstance(prop, dict) else None
            if prop_name in required:
                fields[prop_name] = (annotation, Field(..., description=description))
            else:
                default = prop.get("default") if isinstance(prop, dict) else None
                fields[prop_name] = (Optional[annotation], Field(default=default, description=description))

        model = create_model(_model_name(name), __base__=_OpenParams, **fields)  # type: ignore[call-overload]
        return cls(model, exclude_unset=True)

    def __repr__(self) -> str:
        return f"ParameterSchema({self._model.__name__})"


def _annotation_for(prop: Dict[str, Any]) -> Any:
    enum = prop.get("enum")
    if isinstance(enum, list) and enum and all(isinstance(v, (str, int, bool)) for v in enum):
        return Literal[tuple(enum)]  # type: ignore[valid-type]

    json_type = prop.get("type")
    if isinstance(json_type, list):
        members = [_JSON_TYPES.get(t, Any) for t in json_type]
        if len(members) == 1:
            return members[0]
        out: Any = members[0]
        for m in members[1:]:
            out = out | m if m is not Any and out is not Any else Any
        return out
    if json_type == "array":
        items = prop.get("items")
        if isinstance(items, dict) and items:
            return List[_annotation_for(items)]  # type: ignore[misc]
        return list
    return _JSON_TYPES.get(str(json_type), Any) if json_type is not None else Any


def _model_name(name: str) -> str:
    cleaned = "".join(part.capitalize() for part in name.replace("-", "_").replace(".", "_").split("_") if part)
    return f"{cleaned or 'Tool'}Params"


EMPTY_SCHEMA = ParameterSchema(_EmptyParams)
