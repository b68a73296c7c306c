from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from stackscript.template.engine import TemplateExecution


class TemplateError(Exception):
    """Base class for all errors raised while parsing, resolving, running or reverting templates."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TemplateSyntaxError(TemplateError):
    """
    Raised when a template text does not match the grammar. ``context`` holds the offending line with a marker
    under the error position, when known.
    """

    def __init__(
        self,
        message: str,
        line: int = None,
        column: int = None,
        rule: str = None,
        expected: Iterable[str] = None,
    ):
        self.line = line
        self.column = column
        self.rule = rule
        self.expected = sorted(expected) if expected else []
        self.context = ""
        location = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"{message}{location}")


class UnknownActionError(TemplateSyntaxError):
    def __init__(self, action: str, line: int = None, column: int = None):
        self.action = action
        super().__init__(f"unknown action '{action}'", line=line, column=column, rule="action")


class UnknownEntityError(TemplateSyntaxError):
    def __init__(self, entity: str, line: int = None, column: int = None):
        self.entity = entity
        super().__init__(f"unknown entity '{entity}'", line=line, column=column, rule="entity")


class DuplicateDeclarationError(TemplateError):
    def __init__(self, identifier: str, line: int = None):
        self.identifier = identifier
        location = f" at line {line}" if line is not None else ""
        super().__init__(f"identifier '{identifier}' is declared more than once{location}")


class ResolutionError(TemplateError):
    """Base class for errors raised when a symbolic value cannot be resolved."""


class UnresolvedReferenceError(ResolutionError):
    def __init__(self, identifier: str, reason: str = "is not declared before its use"):
        self.identifier = identifier
        super().__init__(f"reference ${identifier} {reason}")


class UnresolvedAliasError(ResolutionError):
    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f"alias @{alias} cannot be resolved")


class UnresolvedHoleError(ResolutionError):
    def __init__(self, identifier: str, reason: str = "was not filled"):
        self.identifier = identifier
        super().__init__(f"hole {{{identifier}}} {reason}")


class ParamTypeError(TemplateError):
    """Raised when a resolved value does not have the type a driver expects."""

    def __init__(self, param: str, message: str):
        self.param = param
        super().__init__(f"invalid parameter '{param}': {message}")


class MissingParamError(ParamTypeError):
    def __init__(self, param: str):
        super().__init__(param, "required parameter is missing")


class DriverError(TemplateError):
    """Raised when a driver fails. The original error is available as ``__cause__``."""


class DriverNotFoundError(DriverError):
    def __init__(self, action: str, entity: str, dry_run: bool = False):
        self.action = action
        self.entity = entity
        kind = "dry run driver" if dry_run else "driver"
        super().__init__(f"no {kind} registered for '{action} {entity}'")


class TemplateExecutionError(TemplateError):
    """
    Raised when a template run stops at a failing statement. The partial execution record is available via
    ``execution``, the underlying error via ``__cause__``.
    """

    def __init__(self, message: str, execution: "TemplateExecution", index: Optional[int] = None):
        super().__init__(message)
        self.execution = execution
        self.index = index


class NoInverseActionError(TemplateError):
    """Diagnostic for an executed statement that cannot be reverted. It is collected, not raised, by ``revert``."""

    def __init__(self, action: str, entity: str):
        self.action = action
        self.entity = entity
        super().__init__(f"no inverse action for '{action} {entity}', skipping it")


class CorruptRecordError(TemplateError):
    """Raised when a recorded execution holds values that should have been resolved literals."""


class ExecutionNotFoundError(TemplateError):
    def __init__(self, revert_id: str):
        self.revert_id = revert_id
        super().__init__(f"no template execution found for revert ID '{revert_id}'")
