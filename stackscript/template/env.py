import logging
from typing import Any, Callable, Dict, Mapping, Optional

from stackscript.template.ast import Expression
from stackscript.template.errors import (
    TemplateSyntaxError,
    UnresolvedAliasError,
    UnresolvedHoleError,
    UnresolvedReferenceError,
)
from stackscript.template.values import (
    AliasValue,
    HoleValue,
    RefValue,
    Value,
    literal_from_native,
)

LOG = logging.getLogger(__name__)

HoleFiller = Callable[[str], Optional[str]]
AliasResolver = Callable[[str], Optional[str]]


def static_alias_resolver(aliases: Mapping[str, str]) -> AliasResolver:
    """Creates an alias resolver looking up names in a fixed mapping."""

    def _resolve(name: str) -> Optional[str]:
        return aliases.get(name)

    return _resolve


class Environment:
    """
    Holds the state of a single template run: the results bound to declared identifiers, and the collaborators
    used to resolve aliases and holes. An environment is owned by exactly one run and discarded afterwards.
    """

    bindings: Dict[str, Any]
    fillers: Dict[str, str]
    hole_filler: Optional[HoleFiller]
    alias_resolver: Optional[AliasResolver]
    log: logging.Logger

    def __init__(
        self,
        fillers: Mapping[str, str] = None,
        hole_filler: HoleFiller = None,
        alias_resolver: AliasResolver = None,
        log: logging.Logger = None,
    ):
        self.bindings = {}
        self.fillers = dict(fillers or {})
        self.hole_filler = hole_filler
        self.alias_resolver = alias_resolver
        self.log = log or LOG

    def bind(self, identifier: str, result: Any) -> None:
        if identifier in self.bindings:
            self.log.debug("Overwriting binding of '%s'", identifier)
        self.bindings[identifier] = result

    def resolve_reference(self, identifier: str) -> Value:
        if identifier not in self.bindings:
            raise UnresolvedReferenceError(identifier)
        result = self.bindings[identifier]
        if result is None or result == "":
            raise UnresolvedReferenceError(identifier, "refers to a statement without result")
        try:
            return literal_from_native(result)
        except TypeError as e:
            raise UnresolvedReferenceError(identifier, f"cannot be used as parameter: {e}")

    def resolve_alias(self, name: str) -> Value:
        identifier = self.alias_resolver(name) if self.alias_resolver else None
        if not identifier:
            raise UnresolvedAliasError(name)
        self.log.debug("Resolved alias @%s to %s", name, identifier)
        return literal_from_native(identifier)

    def fill_hole(self, identifier: str) -> str:
        if str(self.fillers.get(identifier) or "").strip():
            return str(self.fillers[identifier]).strip()
        if not self.hole_filler:
            raise UnresolvedHoleError(identifier, "was not filled and no filler is available")
        try:
            filled = self.hole_filler(identifier)
        except Exception as e:
            raise UnresolvedHoleError(identifier, f"could not be filled: {e}") from e
        if filled is None or not str(filled).strip():
            raise UnresolvedHoleError(identifier)
        # remember the value, the same hole may occur in several statements
        self.fillers[identifier] = str(filled).strip()
        return self.fillers[identifier]

    def resolve_hole(self, identifier: str) -> Value:
        from stackscript.template.parser import parse_value

        text = self.fill_hole(identifier)
        try:
            value = parse_value(text)
        except TemplateSyntaxError:
            raise UnresolvedHoleError(identifier, f"is not a valid value: '{text}'") from None
        if isinstance(value, HoleValue):
            raise UnresolvedHoleError(identifier, f"was filled with another hole {value.render()}")
        if not value.literal:
            return self.resolve_value(value)
        return value

    def resolve_value(self, value: Value) -> Value:
        """
        Resolves a single value to a literal value. Literal values are returned unchanged.

        :raises ResolutionError: if a reference, alias or hole cannot be resolved
        """
        if value.literal:
            return value
        if isinstance(value, RefValue):
            return self.resolve_reference(value.identifier)
        if isinstance(value, AliasValue):
            return self.resolve_alias(value.name)
        if isinstance(value, HoleValue):
            return self.resolve_hole(value.identifier)
        raise TypeError(f"Unexpected value type {type(value)}")

    def resolve_params(
        self, expression: Expression, resolved: Dict[str, Value] = None
    ) -> Dict[str, Value]:
        """
        Resolves all parameters of the given expression, in order.

        :param expression: the expression to resolve
        :param resolved: optional dict receiving the values resolved so far, also if resolution fails midway
        :return: the parameters with literal values only
        """
        resolved = {} if resolved is None else resolved
        for key, value in expression.params.items():
            resolved[key] = self.resolve_value(value)
        return resolved
