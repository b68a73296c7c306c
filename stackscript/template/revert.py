"""
Generation of templates undoing a recorded template execution.

The reverted template is built from what was captured when the execution ran, the resolved parameters and
results of its statements. Nothing is resolved again, the environment of the original run is gone and the
resources it referred to may have changed since.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from stackscript.template.ast import Expression, Template
from stackscript.template.engine import ExecutedStatement, TemplateExecution
from stackscript.template.errors import CorruptRecordError, NoInverseActionError
from stackscript.template.models import ENTITIES_DELETED_BY_PARAMS, Action, inverse_action
from stackscript.template.values import Value, literal_from_native

LOG = logging.getLogger(__name__)


@dataclass
class RevertResult:
    template: Template
    diagnostics: List[NoInverseActionError] = field(default_factory=list)

    def __str__(self) -> str:
        return self.template.render()


def _captured_params(entry: ExecutedStatement) -> Dict[str, Value]:
    for key, value in entry.resolved_params.items():
        if not value.literal:
            raise CorruptRecordError(
                f"recorded parameter '{key}={value.render()}' of '{entry.statement}' was never resolved"
            )
    return dict(entry.resolved_params)


def _captured_result(entry: ExecutedStatement) -> Value:
    if entry.result is None or entry.result == "":
        raise CorruptRecordError(f"'{entry.statement}' has no recorded result to revert it with")
    try:
        return literal_from_native(entry.result)
    except TypeError as e:
        raise CorruptRecordError(f"recorded result of '{entry.statement}' is not usable: {e}")


def invert(entry: ExecutedStatement) -> Expression:
    """
    Builds the expression undoing a single successfully executed statement.

    :param entry: the executed statement
    :return: the inverse expression
    :raises NoInverseActionError: if the action of the statement cannot be undone
    :raises CorruptRecordError: if the recorded values of the statement are not literals
    """
    expression = entry.expression
    inverse = inverse_action(expression.action)
    if inverse is None:
        raise NoInverseActionError(expression.action, expression.entity)

    if expression.action == Action.CREATE and expression.entity not in ENTITIES_DELETED_BY_PARAMS:
        params = {"id": _captured_result(entry)}
    else:
        params = _captured_params(entry)
    return Expression(inverse, expression.entity, params)


def revert(execution: TemplateExecution, log: logging.Logger = None) -> RevertResult:
    """
    Creates the template reverting the given execution. Only successfully executed statements are reverted,
    last executed first. Statements without inverse action are skipped and reported as diagnostics.

    :param execution: the recorded execution
    :param log: logger to report skipped statements to
    :return: the reverted template and the diagnostics
    :raises CorruptRecordError: if the record holds values that were not resolved when it was executed
    """
    log = log or LOG
    result = RevertResult(Template())
    for entry in reversed(execution.successful()):
        try:
            expression = invert(entry)
        except NoInverseActionError as e:
            log.warning("Cannot revert '%s': %s", entry.statement, e.message)
            result.diagnostics.append(e)
            continue
        result.template.statements.append(expression)

    LOG.debug(
        "Reverted execution %s into %s statements (%s skipped)",
        execution.id,
        len(result.template),
        len(result.diagnostics),
    )
    return result
