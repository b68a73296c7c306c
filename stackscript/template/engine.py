import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from stackscript import config
from stackscript.template.ast import (
    Comment,
    Declaration,
    Expression,
    Statement,
    Template,
    expression_of,
)
from stackscript.template.env import Environment
from stackscript.template.errors import (
    DriverError,
    DuplicateDeclarationError,
    TemplateError,
    TemplateExecutionError,
)
from stackscript.template.models import Action, Entity
from stackscript.template.values import Value, value_from_dict
from stackscript.utils.strings import new_revert_id, truncate

if TYPE_CHECKING:
    from stackscript.drivers.registry import DriverRegistry
    from stackscript.history.store import HistoryStore

LOG = logging.getLogger(__name__)


@dataclass
class ExecutedStatement:
    """A statement of a template run, with the parameters it was executed with and its outcome."""

    statement: Statement
    resolved_params: Dict[str, Value] = field(default_factory=dict)
    result: Any = None
    error: Optional[str] = None

    @property
    def expression(self) -> Expression:
        return expression_of(self.statement)

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        expression = self.expression
        return {
            "identifier": self.statement.identifier
            if isinstance(self.statement, Declaration)
            else None,
            "action": expression.action.value,
            "entity": expression.entity.value,
            "params": {key: value.to_dict() for key, value in expression.params.items()},
            "resolved_params": {
                key: value.to_dict() for key, value in self.resolved_params.items()
            },
            "result": self.result,
            "error": self.error,
            "line": self.statement.line,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutedStatement":
        expression = Expression(
            Action(data["action"]),
            Entity(data["entity"]),
            {key: value_from_dict(value) for key, value in (data.get("params") or {}).items()},
            line=data.get("line"),
        )
        statement = expression
        if data.get("identifier"):
            statement = Declaration(data["identifier"], expression, line=data.get("line"))
        return cls(
            statement=statement,
            resolved_params={
                key: value_from_dict(value)
                for key, value in (data.get("resolved_params") or {}).items()
            },
            result=data.get("result"),
            error=data.get("error"),
        )


@dataclass
class TemplateExecution:
    """
    The record of a template run: every executed statement in execution order, up to and including the first
    failing one. Records of real runs are persisted under their revert ID and can be reverted later.
    """

    id: str = field(default_factory=new_revert_id)
    date: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    dry_run: bool = False
    statements: List[ExecutedStatement] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(entry.success for entry in self.statements)

    def successful(self) -> List[ExecutedStatement]:
        return [entry for entry in self.statements if entry.success]

    def failed(self) -> Optional[ExecutedStatement]:
        for entry in self.statements:
            if not entry.success:
                return entry
        return None

    def template(self) -> Template:
        """Returns the executed statements as template, as they were written (not resolved)."""
        return Template([entry.statement for entry in self.statements])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "dry_run": self.dry_run,
            "statements": [entry.to_dict() for entry in self.statements],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateExecution":
        return cls(
            id=data["id"],
            date=datetime.fromisoformat(data["date"]),
            dry_run=data.get("dry_run", False),
            statements=[ExecutedStatement.from_dict(entry) for entry in data.get("statements", [])],
        )


def check_declarations(template: Template) -> None:
    """
    Makes sure no identifier is declared more than once in the given template.

    :raises DuplicateDeclarationError: for the first identifier declared a second time
    """
    declared = set()
    for declaration in template.declarations():
        if declaration.identifier in declared:
            raise DuplicateDeclarationError(declaration.identifier, line=declaration.line)
        declared.add(declaration.identifier)


class TemplateRunner:
    """
    Runs templates statement by statement against the drivers of a registry. The run stops at the first failing
    statement, later statements may depend on results that are missing.
    """

    registry: "DriverRegistry"
    store: Optional["HistoryStore"]
    allow_redeclaration: bool

    def __init__(
        self,
        registry: "DriverRegistry",
        store: "HistoryStore" = None,
        allow_redeclaration: bool = None,
    ):
        self.registry = registry
        self.store = store
        self.allow_redeclaration = (
            not config.STRICT_DECLARATIONS if allow_redeclaration is None else allow_redeclaration
        )

    def run(
        self, template: Template, env: Environment = None, dry_run: bool = False
    ) -> TemplateExecution:
        """
        Runs the given template.

        :param template: the template to run
        :param env: the environment of this run, a new one is created if not given
        :param dry_run: whether to use the dry run drivers
        :return: the execution record
        :raises DuplicateDeclarationError: if redeclarations are not allowed and the template has some
        :raises TemplateExecutionError: if a statement fails, carrying the partial execution record
        """
        env = env or Environment()
        log = env.log
        if not self.allow_redeclaration:
            check_declarations(template)

        execution = TemplateExecution(dry_run=dry_run)
        log.debug("Starting template execution %s (dry run: %s)", execution.id, dry_run)
        try:
            for index, statement in enumerate(template):
                if isinstance(statement, Comment):
                    continue
                entry = ExecutedStatement(statement)
                execution.statements.append(entry)
                try:
                    entry.result = self._execute(entry, env, dry_run)
                except TemplateError as e:
                    entry.error = e.message
                    position = f"line {statement.line}" if statement.line else f"#{index + 1}"
                    log.error("Statement %s '%s' failed: %s", position, statement, e.message)
                    raise TemplateExecutionError(
                        f"statement {position} '{statement}' failed: {e.message}",
                        execution,
                        index,
                    ) from e
                except BaseException:
                    # the outcome of the statement is unknown, it must not be reverted
                    entry.error = "interrupted"
                    log.warning("Statement '%s' was interrupted", statement)
                    raise
                if isinstance(statement, Declaration):
                    env.bind(statement.identifier, entry.result)
        finally:
            self._save(execution, log)
        return execution

    def _execute(self, entry: ExecutedStatement, env: Environment, dry_run: bool) -> Any:
        expression = entry.expression
        env.resolve_params(expression, entry.resolved_params)
        driver = self.registry.lookup(expression.entity, expression.action, dry_run=dry_run)
        params = {key: value.native() for key, value in entry.resolved_params.items()}
        env.log.debug(
            "Calling driver for '%s %s' with %s", expression.action, expression.entity, params
        )
        try:
            result = driver(params)
        except TemplateError:
            raise
        except Exception as e:
            raise DriverError(f"{expression.action} {expression.entity}: {e}") from e
        env.log.info(
            "%s%s %s: %s",
            "[dry run] " if dry_run else "",
            expression.action,
            expression.entity,
            truncate(result, 80) if result is not None else "done",
        )
        return result

    def _save(self, execution: TemplateExecution, log: logging.Logger) -> None:
        if not self.store or execution.dry_run or not execution.statements:
            return
        self.store.save(execution)
        log.debug("Saved template execution %s", execution.id)
