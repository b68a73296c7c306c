from typing import Any, Dict, Optional

from stackscript.constants import FALSE_STRINGS, TRUE_STRINGS
from stackscript.template.errors import MissingParamError, ParamTypeError

PARAM_KINDS = ("str", "int", "bool", "list")


def convert_param(name: str, value: Any, kind: str) -> Any:
    """
    Converts a resolved template value into the type an API call expects.

    :param name: the template parameter name, used in error messages
    :param value: the native value of the parameter, None if the parameter is missing
    :param kind: one of ``str``, ``int``, ``bool``, ``list``
    :return: the converted value
    :raises MissingParamError: if the value is None
    :raises ParamTypeError: if the value cannot be converted
    """
    if value is None:
        raise MissingParamError(name)

    if kind == "str":
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ParamTypeError(name, f"expected a string, got {_describe(value)}")
        return str(value)

    if kind == "int":
        if isinstance(value, bool):
            raise ParamTypeError(name, f"expected an integer, got {_describe(value)}")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            return int(value)
        raise ParamTypeError(name, f"expected an integer, got {_describe(value)}")

    if kind == "bool":
        if isinstance(value, bool):
            return value
        if str(value).strip() in TRUE_STRINGS:
            return True
        if str(value).strip() in FALSE_STRINGS:
            return False
        raise ParamTypeError(name, f"expected true or false, got {_describe(value)}")

    if kind == "list":
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return [str(value)]
        if isinstance(value, list):
            return [str(item) for item in value]
        raise ParamTypeError(name, f"expected a list, got {_describe(value)}")

    raise ValueError(f"Unknown parameter kind '{kind}', expected one of {PARAM_KINDS}")


def get_param(params: Dict[str, Any], name: str, kind: str, default: Any = None) -> Optional[Any]:
    """Converts an optional parameter, returning the default if it is not given."""
    if params.get(name) is None:
        return default
    return convert_param(name, params[name], kind)


def _describe(value: Any) -> str:
    if isinstance(value, tuple):
        return f"range {value[0]}-{value[1]}"
    if isinstance(value, list):
        return f"list {','.join(str(v) for v in value)}"
    return f"{type(value).__name__} '{value}'"
