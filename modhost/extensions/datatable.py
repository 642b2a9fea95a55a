"""Networked fields of an extension. Schema is fixed once the table is created."""

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

_TYPES: dict[str, tuple[type, ...]] = {
    "boolean": (bool,),
    "integer": (int,),
    "float": (int, float),
    "string": (str,),
}

ChangeCallback = Callable[[str, Any, Any], Any]


@dataclass(frozen=True)
class DataTableVar:
    type: str
    default: Any
    access: str | None = None


class DataTable:
    """Attribute-style access to declared fields. Unknown fields and wrong types raise."""

    def __init__(self, name: str, fields: dict[str, DataTableVar]) -> None:
        for key, var in fields.items():
            if var.type not in _TYPES:
                raise ValueError(f"Unknown data table type {var.type!r} for {key}")
        object.__setattr__(self, "_name", name)
        object.__setattr__(self, "_fields", dict(fields))
        object.__setattr__(self, "_values", {k: v.default for k, v in fields.items()})
        object.__setattr__(self, "_on_change", None)

    @property
    def name(self) -> str:
        return self._name

    def keys(self) -> list[str]:
        return list(self._fields)

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def set_change_callback(self, callback: ChangeCallback | None) -> None:
        object.__setattr__(self, "_on_change", callback)

    def __getattr__(self, key: str) -> Any:
        values = object.__getattribute__(self, "_values")
        if key not in values:
            raise AttributeError(f"{self._name} has no networked field {key!r}")
        return values[key]

    def __setattr__(self, key: str, value: Any) -> None:
        if key not in self._fields:
            raise AttributeError(
                f"{self._name} has no networked field {key!r}; fields are fixed after declaration"
            )
        expected = _TYPES[self._fields[key].type]
        if not isinstance(value, expected) or (
            bool not in expected and isinstance(value, bool)
        ):
            raise TypeError(
                f"{self._name}.{key} expects {self._fields[key].type}, got {type(value).__name__}"
            )
        old = self._values[key]
        if old == value:
            return
        self._values[key] = value
        if self._on_change is not None:
            try:
                self._on_change(key, old, value)
            except Exception as e:
                logger.exception("Data table change callback failed for %s.%s: %s", self._name, key, e)
