"""
Boundary parsing for telemetry rows and variable readings.

Rows arrive as loosely typed mappings (spreadsheet cells, JSON blobs from the
record store). They are validated once here into `TelemetryRecord`; everything
downstream works against the typed structure.
"""

import math
import re
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from core.domain.errors import ParseError
from core.domain.models import TelemetryRecord
from core.domain.result import Result

# Leading numeric prefix, so "185/95" reads as 185 and "98.6F" as 98.6
_LEADING_NUMBER = re.compile(r"^\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?)")


def parse_reading(name: str, value: Any) -> Result[float, ParseError]:
    """Parse a variable reading into a float.

    Numbers pass through, strings are read up to their first non-numeric
    character. Booleans, NaN, infinities and text without a leading number
    are errors.
    """
    if isinstance(value, bool):
        return Result.err(ParseError(f"{name}: boolean reading {value!r} is not numeric"))

    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        match = _LEADING_NUMBER.match(value)
        if not match:
            return Result.err(ParseError(f"{name}: reading {value!r} is not numeric"))
        number = float(match.group(1))
    else:
        return Result.err(ParseError(f"{name}: unsupported reading type {type(value).__name__}"))

    if math.isnan(number) or math.isinf(number):
        return Result.err(ParseError(f"{name}: reading {value!r} is not finite"))
    return Result.ok(number)


def parse_telemetry_row(row: Mapping[str, Any]) -> Result[TelemetryRecord, ParseError]:
    """Validate a raw row into a `TelemetryRecord`."""
    try:
        return Result.ok(TelemetryRecord.model_validate(dict(row)))
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        return Result.err(ParseError(f"invalid telemetry row ({fields or 'unknown field'})"))
