"""Parameterized SQL for access descriptors.

``build_query`` turns an ``AccessDescriptor`` into a ``psycopg.sql``
composition plus named parameters. Resource and column names are always
passed as identifiers and every value (bounds, row limit) as a bound
parameter, so no caller-supplied text is ever spliced into the statement.

The expected table layout is one row per positioned record with at least
``id``, ``x``, ``y``, ``name``, ``category``, ``value``, ``created_at`` (and
``raw_data``, ``bytes`` for the quantum level); relationship tables carry a
``source_id`` column.
"""

from dataclasses import dataclass, field
from typing import Any

from psycopg import sql

from canvaslod.services.levels import SemanticLevel
from canvaslod.services.query_plan import AccessDescriptor, AccessPattern

_DIRECTIONS = {"asc": sql.SQL("ASC"), "desc": sql.SQL("DESC")}


@dataclass(frozen=True)
class AccessQuery:
    """A composed statement and the parameters to execute it with."""
    statement: sql.Composed
    params: dict[str, Any] = field(default_factory=dict)


def _identifier(name: str) -> sql.Identifier:
    """Identifier for a possibly schema-qualified name ("schema.table")."""
    return sql.Identifier(*name.split("."))


def _column(name: str, alias: str | None = None) -> sql.Identifier:
    return sql.Identifier(alias, name) if alias else sql.Identifier(name)


def _bounds_filter(alias: str | None = None) -> sql.Composed:
    return sql.SQL("{x} BETWEEN {min_x} AND {max_x} AND {y} BETWEEN {min_y} AND {max_y}").format(
        x=_column("x", alias),
        y=_column("y", alias),
        min_x=sql.Placeholder("min_x"),
        max_x=sql.Placeholder("max_x"),
        min_y=sql.Placeholder("min_y"),
        max_y=sql.Placeholder("max_y"),
    )


def _order(order_by: tuple[str, str] | None) -> sql.Composable:
    if not order_by:
        return sql.SQL("")
    column, direction = order_by
    if direction.lower() not in _DIRECTIONS:
        raise ValueError(f"Unsupported order direction: {direction!r}")
    return sql.SQL(" ORDER BY {} {}").format(sql.Identifier(column), _DIRECTIONS[direction.lower()])


def build_query(descriptor: AccessDescriptor) -> AccessQuery:
    """Compile a descriptor into a parameterized statement.

    Args:
        descriptor: The access descriptor produced by ``QueryPlanner.plan``

    Returns:
        AccessQuery with named placeholders ``min_x``, ``max_x``, ``min_y``,
        ``max_y`` and (for row-returning patterns) ``row_limit``
    """
    table = _identifier(descriptor.resource)
    params: dict[str, Any] = {
        "min_x": descriptor.bounds.min_x,
        "max_x": descriptor.bounds.max_x,
        "min_y": descriptor.bounds.min_y,
        "max_y": descriptor.bounds.max_y,
    }
    limit = sql.SQL(" LIMIT {}").format(sql.Placeholder("row_limit"))
    pattern = descriptor.pattern

    if pattern == AccessPattern.RAW:
        if descriptor.level == SemanticLevel.QUANTUM:
            columns = sql.SQL(", ").join(map(sql.Identifier, ("id", "raw_data", "bytes")))
        else:
            columns = sql.SQL("*")
        statement = sql.SQL("SELECT {columns} FROM {table} WHERE {where}{limit}").format(
            columns=columns, table=table, where=_bounds_filter(), limit=limit,
        )

    elif pattern == AccessPattern.RELATIONSHIP:
        related = _identifier(descriptor.join or f"{descriptor.resource}_relations")
        statement = sql.SQL(
            "SELECT t1.*, COUNT(t2.id) AS connections"
            " FROM {table} t1 LEFT JOIN {related} t2 ON t1.id = t2.source_id"
            " WHERE {where} GROUP BY t1.id{limit}"
        ).format(table=table, related=related, where=_bounds_filter("t1"), limit=limit)

    elif pattern == AccessPattern.ENTITY:
        columns = sql.SQL(", ").join(
            map(sql.Identifier, ("id", "name", "category", "value", "created_at"))
        )
        statement = sql.SQL("SELECT {columns} FROM {table} WHERE {where}{order}{limit}").format(
            columns=columns,
            table=table,
            where=_bounds_filter(),
            order=_order(descriptor.order_by),
            limit=limit,
        )

    elif pattern == AccessPattern.AGGREGATE:
        group = sql.Identifier(descriptor.group_by or "category")
        statement = sql.SQL(
            "SELECT {group}, COUNT(*) AS count, AVG(value) AS avg_value,"
            " SUM(value) AS total_value"
            " FROM {table} WHERE {where} GROUP BY {group}{order}{limit}"
        ).format(
            group=group,
            table=table,
            where=_bounds_filter(),
            order=_order(descriptor.order_by),
            limit=limit,
        )

    else:  # SUMMARY
        statement = sql.SQL(
            "SELECT COUNT(*) AS total_entities, COUNT(DISTINCT category) AS categories,"
            " MIN(value) AS min_value, MAX(value) AS max_value, AVG(value) AS avg_value"
            " FROM {table} WHERE {where}"
        ).format(table=table, where=_bounds_filter())
        return AccessQuery(statement=statement, params=params)

    params["row_limit"] = descriptor.row_limit
    return AccessQuery(statement=statement, params=params)
