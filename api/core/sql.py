"""
Helpers for building parameterized SQL.
"""

from __future__ import annotations

from typing import Any


class QueryParams:
    """
    Accumulates positional arguments and hands out matching `$n` placeholders.

        params = QueryParams()
        where = [f"c.name = {params.add(category)}"]
        rows = await db.fetch_all(sql, *params.args)
    """

    def __init__(self) -> None:
        self._args: list[Any] = []

    def add(self, value: Any) -> str:
        self._args.append(value)
        return f"${len(self._args)}"

    @property
    def args(self) -> list[Any]:
        return list(self._args)

    def __len__(self) -> int:
        return len(self._args)


def where_clause(conditions: list[str]) -> str:
    if not conditions:
        return "TRUE"
    return " AND ".join(conditions)
