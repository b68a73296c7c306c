"""
Parsing of template texts.

Parsing happens in two passes: lark turns the text into a concrete syntax tree following ``grammar.lark``, then
``TemplateTransformer`` maps that tree onto the ``Template`` model. The transformation keeps no state between
rules, so a statement is always built from its own subtree.
"""
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import (
    UnexpectedCharacters,
    UnexpectedEOF,
    UnexpectedInput,
    UnexpectedToken,
    VisitError,
)

from stackscript.template.ast import Comment, Declaration, Expression, Statement, Template
from stackscript.template.errors import (
    TemplateError,
    TemplateSyntaxError,
    UnknownActionError,
    UnknownEntityError,
)
from stackscript.template.models import lookup_action, lookup_entity
from stackscript.template.values import (
    AliasValue,
    CidrValue,
    CsvValue,
    HoleValue,
    IntRangeValue,
    IntValue,
    IpValue,
    RefValue,
    StringValue,
    Value,
)

LOG = logging.getLogger(__name__)

_GRAMMAR_PATH = Path(__file__).with_name("grammar.lark")

_PARSER = Lark(
    _GRAMMAR_PATH.read_text(),
    parser="lalr",
    lexer="contextual",
    start=["template", "value"],
    propagate_positions=True,
)

VALUE_TERMINALS = {"CIDR", "IP", "CSV", "INTRANGE", "INT", "REF", "ALIAS", "LBRACE", "STRING"}

# readable names of the grammar terminals, used in error messages
TERMINAL_NAMES = {
    "IDENTIFIER": "identifier",
    "EQUAL": "'='",
    "LBRACE": "'{'",
    "RBRACE": "'}'",
    "COMMENT": "comment",
    "_NL": "end of line",
    "$END": "end of input",
    "CIDR": "cidr",
    "IP": "ip",
    "CSV": "csv",
    "INTRANGE": "int range",
    "INT": "int",
    "REF": "reference",
    "ALIAS": "alias",
    "STRING": "string",
}


class TemplateTransformer(Transformer):
    """Transforms the concrete syntax tree of a template into a ``Template``."""

    def template(self, statements: List[Statement]) -> Template:
        return Template(list(statements))

    def declaration(self, children) -> Declaration:
        identifier, expression = children
        return Declaration(str(identifier), expression, line=identifier.line)

    def expression(self, children) -> Expression:
        action_token, entity_token, *params = children
        action = lookup_action(str(action_token))
        if action is None:
            raise UnknownActionError(
                str(action_token), line=action_token.line, column=action_token.column
            )
        entity = lookup_entity(str(entity_token))
        if entity is None:
            raise UnknownEntityError(
                str(entity_token), line=entity_token.line, column=entity_token.column
            )

        mapping: Dict[str, Value] = {}
        for key, value in params:
            if key in mapping:
                raise TemplateSyntaxError(
                    f"duplicate parameter '{key}'", line=key.line, column=key.column, rule="param"
                )
            mapping[str(key)] = value
        return Expression(action, entity, mapping, line=action_token.line)

    def param(self, children):
        key, value = children
        return key, value

    def comment(self, children) -> Comment:
        (token,) = children
        return Comment(str(token).rstrip(), line=token.line)

    @v_args(inline=True)
    def cidr(self, token: Token) -> CidrValue:
        return CidrValue(str(token))

    @v_args(inline=True)
    def ip(self, token: Token) -> IpValue:
        return IpValue(str(token))

    @v_args(inline=True)
    def csv(self, token: Token) -> CsvValue:
        return CsvValue(tuple(item.strip() for item in str(token).split(",")))

    @v_args(inline=True)
    def intrange(self, token: Token) -> IntRangeValue:
        low, high = str(token).split("-")
        return IntRangeValue(int(low), int(high))

    @v_args(inline=True)
    def int(self, token: Token) -> IntValue:
        return IntValue(int(token))

    @v_args(inline=True)
    def ref(self, token: Token) -> RefValue:
        return RefValue(str(token)[1:])

    @v_args(inline=True)
    def alias(self, token: Token) -> AliasValue:
        return AliasValue(str(token)[1:])

    @v_args(inline=True)
    def hole(self, token: Token) -> HoleValue:
        return HoleValue(str(token))

    @v_args(inline=True)
    def string(self, token: Token) -> StringValue:
        return StringValue(str(token))


def _readable(terminals: Iterable[str]) -> List[str]:
    return sorted({TERMINAL_NAMES.get(name, name) for name in terminals})


def _rule_for(expected: Iterable[str]) -> str:
    """Names the grammar rule the parser was in, judging from the terminals it expected."""
    expected = set(expected)
    if expected & VALUE_TERMINALS:
        return "value"
    if "RBRACE" in expected:
        return "hole"
    if "EQUAL" in expected:
        return "param"
    if "IDENTIFIER" in expected:
        return "expression"
    return "template"


def _syntax_error(error: UnexpectedInput, text: str) -> TemplateSyntaxError:
    if isinstance(error, UnexpectedCharacters):
        expected = error.allowed or set()
        message = f"unexpected character {error.char!r}"
    elif isinstance(error, UnexpectedEOF):
        expected = error.expected or set()
        message = "unexpected end of input"
    elif isinstance(error, UnexpectedToken):
        expected = error.expected or set()
        if error.token.type == "$END":
            message = "unexpected end of input"
        elif error.token.type == "_NL":
            message = "unexpected end of line"
        else:
            name = TERMINAL_NAMES.get(error.token.type, error.token.type)
            message = f"unexpected {name} '{error.token}'"
    else:
        expected = set()
        message = "invalid syntax"

    readable = _readable(expected)
    if readable:
        message = f"{message}, expected one of: {', '.join(readable)}"
    result = TemplateSyntaxError(
        message,
        line=getattr(error, "line", None),
        column=getattr(error, "column", None),
        rule=_rule_for(expected),
        expected=readable,
    )
    position = getattr(error, "pos_in_stream", None)
    if position is not None and position >= 0:
        result.context = error.get_context(text)
    return result


def _transform(tree):
    try:
        return TemplateTransformer().transform(tree)
    except VisitError as e:
        if isinstance(e.orig_exc, TemplateError):
            raise e.orig_exc from None
        raise


def parse(text: str) -> Template:
    """
    Parses a template text.

    :param text: the template, one statement per line
    :return: the parsed template
    :raises TemplateSyntaxError: if the text does not match the grammar, or uses unknown actions or entities
    """
    if not text.endswith("\n"):
        text = text + "\n"
    try:
        tree = _PARSER.parse(text, start="template")
    except UnexpectedInput as e:
        raise _syntax_error(e, text) from None

    template = _transform(tree)
    if not template.statements:
        raise TemplateSyntaxError("empty template", line=1, column=1, rule="template")
    LOG.debug("Parsed template with %s statements", len(template.statements))
    return template


def parse_value(text: str) -> Value:
    """
    Parses a single parameter value, following the same precedence rules as values inside a template.

    :param text: the value text, e.g. ``10.0.0.0/24`` or ``$vpc``
    :return: the typed value
    :raises TemplateSyntaxError: if the text is not a valid value
    """
    text = text.strip()
    try:
        tree = _PARSER.parse(text, start="value")
    except UnexpectedInput as e:
        raise _syntax_error(e, text) from None
    return _transform(tree)


def parse_literal(text: str) -> Value:
    """
    Types a plain string with the value grammar. Strings that would parse as symbolic values (references, aliases,
    holes) or not at all are kept as string values.
    """
    try:
        value = parse_value(text)
    except TemplateSyntaxError:
        return StringValue(text)
    if not value.literal:
        return StringValue(text)
    return value


def parse_params(text: str) -> Dict[str, Value]:
    """
    Parses a whitespace separated list of ``key=value`` parameters, e.g. ``cidr=10.0.0.0/24 name=test``.

    :param text: the parameters
    :return: the parameters as ordered mapping
    """
    template = parse(f"none none {text}")
    return template.statements[0].params
