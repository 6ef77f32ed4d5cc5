"""Encoder command line parameters

A parameter is stored without its name; the name is the key of the
dictionary holding it, so the same value can be rendered for any option.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

@dataclass(frozen=True)
class StringParameter:
    prefix: str
    delimiter: str
    value: str

    def value_string(self) -> str:
        return self.value

@dataclass(frozen=True)
class NumberParameter:
    prefix: str
    delimiter: str
    value: float

    def value_string(self) -> str:
        # Whole numbers render without a decimal point: "--crf 30" not "--crf 30.0"
        if float(self.value).is_integer():
            return str(int(self.value))
        return str(self.value)

@dataclass(frozen=True)
class BoolParameter:
    prefix: str
    value: bool

    @property
    def delimiter(self) -> str:
        return ""

    def value_string(self) -> str:
        return "true" if self.value else "false"

CLIParameter = Union[StringParameter, NumberParameter, BoolParameter]

def matches(parameter: CLIParameter, other: CLIParameter) -> bool:
    """Same variant with the same prefix and, for valued variants, delimiter"""
    if type(parameter) is not type(other):
        return False
    if isinstance(parameter, BoolParameter):
        return parameter.prefix == other.prefix
    return parameter.prefix == other.prefix and parameter.delimiter == other.delimiter

def to_parameter_string(parameter: CLIParameter, name: str) -> str:
    """Render as a single token, e.g. "--crf=30"; a false flag renders empty"""
    if isinstance(parameter, BoolParameter):
        return f"{parameter.prefix}{name}" if parameter.value else ""
    return f"{parameter.prefix}{name}{parameter.delimiter}{parameter.value_string()}"

def to_string_pair(parameter: CLIParameter, name: str) -> Tuple[str, Optional[str]]:
    """
    Render as argv items.

    A space delimiter yields two items ("--crf", "30"); any other delimiter
    yields one joined item and None. Flags yield the flag and None.
    """
    if isinstance(parameter, BoolParameter):
        return to_parameter_string(parameter, name), None
    if parameter.delimiter == " ":
        return f"{parameter.prefix}{name}", parameter.value_string()
    return to_parameter_string(parameter, name), None

def to_string_value(parameter: CLIParameter) -> str:
    return parameter.value_string()

def new_strings(prefix: str, delimiter: str, values: Dict[str, str]) -> Dict[str, CLIParameter]:
    return {name: StringParameter(prefix, delimiter, value) for name, value in values.items()}

def new_numbers(prefix: str, delimiter: str, values: Dict[str, float]) -> Dict[str, CLIParameter]:
    return {name: NumberParameter(prefix, delimiter, value) for name, value in values.items()}

def new_bools(prefix: str, values: Dict[str, bool]) -> Dict[str, CLIParameter]:
    return {name: BoolParameter(prefix, value) for name, value in values.items()}

def diff_parameters(defaults: Dict[str, CLIParameter],
                    overrides: Dict[str, CLIParameter]) -> Dict[str, CLIParameter]:
    """Parameters in overrides that are new or differ from defaults"""
    return {
        name: parameter
        for name, parameter in overrides.items()
        if defaults.get(name) != parameter
    }

def parse_option(token: str, value: Optional[str] = None) -> Tuple[str, CLIParameter]:
    """
    Parse a command line option into a name and parameter.

    "--crf=30" and ("--crf", "30") become numbers, "--tune=psnr" a string
    and a lone "--film-grain-denoise" a true flag. Prefixes are the leading
    dashes of the token.
    """
    stripped = token.lstrip("-")
    prefix = token[:len(token) - len(stripped)]
    if not stripped:
        raise ValueError(f"Invalid option: {token!r}")
    if value is None and "=" in stripped:
        name, value = stripped.split("=", 1)
        delimiter = "="
    elif value is not None:
        name = stripped
        delimiter = " "
    else:
        return stripped, BoolParameter(prefix, True)
    try:
        return name, NumberParameter(prefix, delimiter, float(value))
    except ValueError:
        return name, StringParameter(prefix, delimiter, value)

def _is_negative_number(token: str) -> bool:
    return len(token) > 1 and token[0] == "-" and (token[1].isdigit() or token[1] == ".")

def parse_options(tokens: List[str]) -> Dict[str, CLIParameter]:
    """
    Parse a list of command line tokens into named parameters.

    A token without "=" takes the following token as its value unless that
    token is itself an option; negative numbers count as values.

    Raises:
        ValueError: On a value that does not follow an option.
    """
    options: Dict[str, CLIParameter] = {}
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if not token.startswith("-") or _is_negative_number(token):
            raise ValueError(f"Unexpected value {token!r}")
        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if "=" not in token and following is not None and (
                not following.startswith("-") or _is_negative_number(following)):
            name, parameter = parse_option(token, following)
            index += 2
        else:
            name, parameter = parse_option(token)
            index += 1
        options[name] = parameter
    return options
