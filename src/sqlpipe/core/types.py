"""
Type inference for lazily created tables.

Maps a sampled Python value to the destination column type. The mapping is
deliberately coarse: anything unrecognised (and a column that only ever held
NULL) becomes ``text``.
"""

from __future__ import annotations

from typing import Any

from sqlpipe.models import ValueKind, kind_of

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

SQL_TYPES: dict[ValueKind, str] = {
    ValueKind.INTEGER: "int(11)",
    ValueKind.FLOAT: "float",
    ValueKind.DATE: "date",
    ValueKind.TIMESTAMP: "datetime",
    ValueKind.SYMBOL: "varchar(255)",
    ValueKind.BOOLEAN: "tinyint(1)",
    ValueKind.TEXT: "text",
    ValueKind.NULL: "text",
}

BIGINT_TYPE = "bigint(20)"
FALLBACK_TYPE = "text"


def infer_type(value: Any) -> str:
    """
    Column type for a sample value.

    Integers outside the signed 32-bit range get ``bigint(20)``. Never raises.
    """
    kind = kind_of(value)
    if kind is ValueKind.INTEGER and not INT32_MIN <= value <= INT32_MAX:
        return BIGINT_TYPE
    return SQL_TYPES.get(kind, FALLBACK_TYPE)
