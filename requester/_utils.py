from __future__ import annotations

import datetime
import decimal
import math
import typing
from urllib.parse import urlencode

import httpx

QueryValues = typing.Mapping[str, typing.Sequence[str]]
TimeoutTypes = typing.Union[float, int, datetime.timedelta, None]


def to_string(value: typing.Any) -> str:
    """Convert a scalar to the text used in query strings and form fields.

    ``None`` becomes the empty string, booleans are spelled ``true`` and
    ``false``, bytes are decoded as UTF-8, floats use the shortest ``%g``
    form (``1e+08``, ``0.5``) and anything else goes through ``str()``.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_float(value)
    return str(value)


def format_float(value: float) -> str:
    """Format ``value`` with the fewest digits that round-trip.

    Exponent notation is used below ``1e-4`` and from ``1e+06`` upwards,
    with at least two exponent digits.

    >>> format_float(1e8), format_float(123456.0), format_float(1e-05)
    ('1e+08', '123456', '1e-05')
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    sign, digits, exponent = decimal.Decimal(repr(value)).as_tuple()
    while len(digits) > 1 and digits[-1] == 0:
        digits = digits[:-1]
        exponent += 1
    if digits == (0,):
        return "-0" if sign else "0"
    prefix = "-" if sign else ""
    exp10 = len(digits) + exponent - 1
    if -4 <= exp10 < 6:
        return prefix + format(decimal.Decimal((0, digits, exponent)), "f")
    mantissa = str(digits[0])
    if len(digits) > 1:
        mantissa += "." + "".join(map(str, digits[1:]))
    return f"{prefix}{mantissa}e{'-' if exp10 < 0 else '+'}{abs(exp10):02d}"


def to_seconds(timeout: TimeoutTypes) -> float:
    if timeout is None:
        return 0.0
    if isinstance(timeout, datetime.timedelta):
        return timeout.total_seconds()
    return float(timeout)


def normalize_values(
    values: typing.Mapping[str, typing.Any] | None,
) -> dict[str, list[str]]:
    """Copy a query/form mapping into ``{key: [value, ...]}``.

    A bare string value counts as a single value, any other iterable as a
    list of values.
    """
    if not values:
        return {}
    if isinstance(values, httpx.QueryParams):
        return {key: values.get_list(key) for key in values.keys()}
    out: dict[str, list[str]] = {}
    for key, value in values.items():
        if isinstance(value, (str, bytes)) or not isinstance(value, typing.Iterable):
            out[key] = [to_string(value)]
        else:
            out[key] = [to_string(item) for item in value]
    return out


def encode_values(values: QueryValues) -> str:
    """URL-encode ``values`` with keys in sorted order."""
    pairs = [(key, value) for key in sorted(values) for value in values[key]]
    return urlencode(pairs)


def merge_query(url: httpx.URL, query: QueryValues) -> httpx.URL:
    """Return ``url`` with ``query`` merged into its existing query string.

    Same-named parameters already present in the URL are replaced; all other
    parameters are kept. The result is encoded with keys sorted.
    """
    if not query:
        return url
    merged: dict[str, list[str]] = {}
    for key, value in url.params.multi_items():
        merged.setdefault(key, []).append(value)
    merged.update({key: list(values) for key, values in query.items()})
    return url.copy_with(query=encode_values(merged).encode("ascii"))
