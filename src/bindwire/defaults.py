import datetime
import decimal
import pathlib
import uuid
from typing import Any

DEFAULT_CONSTRUCTION_IGNORES: set[type[Any]] = {
    int,
    str,
    float,
    bool,
    bytes,
    list,
    dict,
    set,
    tuple,
    frozenset,
}
"""Types never built through default construction unless explicitly bound."""

DEFAULT_IGNORED_BASE_TYPES: tuple[type[Any], ...] = (
    pathlib.PurePath,
    datetime.datetime,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    decimal.Decimal,
)
"""Value types whose subclasses are not built through default construction."""
