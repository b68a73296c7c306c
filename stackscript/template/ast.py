from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from stackscript.template.models import Action, Entity
from stackscript.template.values import Value


class Statement:
    """Base class of the statements a template is made of."""

    line: Optional[int]

    def render(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.render()


@dataclass
class Expression(Statement):
    action: Action
    entity: Entity
    params: Dict[str, Value] = field(default_factory=dict)
    line: Optional[int] = field(default=None, compare=False)

    def render(self) -> str:
        parts = [self.action.value, self.entity.value]
        parts.extend(f"{key}={value.render()}" for key, value in self.params.items())
        return " ".join(parts)

    def holes(self) -> List[str]:
        return [value.identifier for value in self.params.values() if value.kind == "hole"]

    def aliases(self) -> List[str]:
        return [value.name for value in self.params.values() if value.kind == "alias"]


@dataclass
class Declaration(Statement):
    identifier: str
    expression: Expression
    line: Optional[int] = field(default=None, compare=False)

    def render(self) -> str:
        return f"{self.identifier} = {self.expression.render()}"


@dataclass
class Comment(Statement):
    text: str
    line: Optional[int] = field(default=None, compare=False)

    def render(self) -> str:
        return self.text


@dataclass
class Template:
    statements: List[Statement] = field(default_factory=list)

    def __iter__(self) -> Iterator[Statement]:
        return iter(self.statements)

    def __len__(self) -> int:
        return len(self.statements)

    def render(self) -> str:
        return "\n".join(statement.render() for statement in self.statements)

    def __str__(self) -> str:
        return self.render()

    def expressions(self) -> Iterator[Expression]:
        """Iterates over all expressions, including the right-hand side of declarations, in template order."""
        for statement in self.statements:
            if isinstance(statement, Declaration):
                yield statement.expression
            elif isinstance(statement, Expression):
                yield statement

    def declarations(self) -> List[Declaration]:
        return [s for s in self.statements if isinstance(s, Declaration)]

    def holes(self) -> List[str]:
        """Returns the identifiers of all holes, without duplicates, in the order they appear."""
        result = []
        for expression in self.expressions():
            for identifier in expression.holes():
                if identifier not in result:
                    result.append(identifier)
        return result

    def aliases(self) -> List[str]:
        result = []
        for expression in self.expressions():
            for name in expression.aliases():
                if name not in result:
                    result.append(name)
        return result


def expression_of(statement: Statement) -> Optional[Expression]:
    """Returns the expression executed for the given statement, or None for comments."""
    if isinstance(statement, Declaration):
        return statement.expression
    if isinstance(statement, Expression):
        return statement
    return None
