"""
Typed parameter values of template expressions.

Every parameter value of a template is exactly one of the kinds below. Literal kinds (string, int, int range,
CIDR, IP, CSV) are handed to drivers as native Python values, symbolic kinds (reference, alias, hole) have to be
resolved by an ``Environment`` first.
"""
from dataclasses import dataclass
from typing import Any, Dict, Tuple


class Value:
    kind: str = ""
    literal: bool = True

    def render(self) -> str:
        raise NotImplementedError

    def native(self) -> Any:
        """Returns the value as it is passed to a driver."""
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "value": self.native()}

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class StringValue(Value):
    value: str
    kind = "string"

    def render(self) -> str:
        return self.value

    def native(self) -> str:
        return self.value


@dataclass(frozen=True)
class IntValue(Value):
    value: int
    kind = "int"

    def render(self) -> str:
        return str(self.value)

    def native(self) -> int:
        return self.value


@dataclass(frozen=True)
class IntRangeValue(Value):
    low: int
    high: int
    kind = "intrange"

    def render(self) -> str:
        return f"{self.low}-{self.high}"

    def native(self) -> Tuple[int, int]:
        return self.low, self.high

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "value": [self.low, self.high]}


@dataclass(frozen=True)
class CidrValue(Value):
    value: str
    kind = "cidr"

    def render(self) -> str:
        return self.value

    def native(self) -> str:
        return self.value


@dataclass(frozen=True)
class IpValue(Value):
    value: str
    kind = "ip"

    def render(self) -> str:
        return self.value

    def native(self) -> str:
        return self.value


@dataclass(frozen=True)
class CsvValue(Value):
    values: Tuple[str, ...]
    kind = "csv"

    def __post_init__(self):
        # allow lists to be passed in, but keep the value hashable
        object.__setattr__(self, "values", tuple(self.values))

    def render(self) -> str:
        return ",".join(self.values)

    def native(self) -> list:
        return list(self.values)


@dataclass(frozen=True)
class RefValue(Value):
    identifier: str
    kind = "ref"
    literal = False

    def render(self) -> str:
        return f"${self.identifier}"

    def native(self) -> str:
        return self.identifier


@dataclass(frozen=True)
class AliasValue(Value):
    name: str
    kind = "alias"
    literal = False

    def render(self) -> str:
        return f"@{self.name}"

    def native(self) -> str:
        return self.name


@dataclass(frozen=True)
class HoleValue(Value):
    identifier: str
    kind = "hole"
    literal = False

    def render(self) -> str:
        return f"{{{self.identifier}}}"

    def native(self) -> str:
        return self.identifier


VALUE_TYPES = {
    cls.kind: cls
    for cls in (
        StringValue,
        IntValue,
        IntRangeValue,
        CidrValue,
        IpValue,
        CsvValue,
        RefValue,
        AliasValue,
        HoleValue,
    )
}


def value_from_dict(data: Dict[str, Any]) -> Value:
    """
    Restores a value serialized with ``Value.to_dict``.

    :param data: dict with the keys ``type`` and ``value``
    :return: the typed value
    :raises ValueError: if the type is unknown
    """
    kind = data.get("type")
    value_type = VALUE_TYPES.get(kind)
    if not value_type:
        raise ValueError(f"Unknown value type: {kind}")
    raw = data.get("value")
    if value_type is IntRangeValue:
        low, high = raw
        return IntRangeValue(int(low), int(high))
    if value_type is IntValue:
        return IntValue(int(raw))
    if value_type is CsvValue:
        return CsvValue(tuple(raw))
    return value_type(raw)


def literal_from_native(obj: Any) -> Value:
    """
    Converts a native value (typically a driver result) into a literal value. Strings are typed with the value
    grammar, so ``"10.0.0.1"`` becomes an IP and ``"subnet-1234"`` a string.

    :param obj: a string, int, bool, list of strings, or an existing literal value
    :return: the literal value
    :raises TypeError: if the object cannot be represented as a literal
    """
    from stackscript.template.parser import parse_literal

    if isinstance(obj, Value):
        if not obj.literal:
            raise TypeError(f"{obj.render()} is not a literal value")
        return obj
    if isinstance(obj, bool):
        return StringValue(str(obj).lower())
    if isinstance(obj, int):
        return IntValue(obj)
    if isinstance(obj, str):
        return parse_literal(obj)
    if isinstance(obj, (list, tuple)) and obj and all(isinstance(item, str) for item in obj):
        if len(obj) == 1:
            return parse_literal(obj[0])
        return CsvValue(tuple(obj))
    raise TypeError(f"cannot use {type(obj).__name__} value {obj!r} as a template literal")
