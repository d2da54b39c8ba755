"""Schema comparison against live column metadata.

Compares a registered ``TableSchema`` with the columns introspected from
the database.  Pure logic -- no I/O, no database connections.

Usage:
    from tablesync.schema.comparator import compare_schema
    from tablesync.schema.introspector import SchemaIntrospector

    live = await SchemaIntrospector(driver).get_table_columns("accounts")
    diff = compare_schema(registry.get("accounts"), live)
    if diff.has_changes:
        print(diff.adds, diff.modifies, diff.drops)
"""

from collections.abc import Mapping

from tablesync.schema.models import ColumnDefinition, ColumnDiff, LiveColumn, TableSchema


def column_differs(definition: ColumnDefinition, live: LiveColumn) -> bool:
    """Return ``True`` when a live column no longer matches its definition.

    Types compare case-insensitively.  A length-qualified definition must
    match ``type(length)`` exactly; an unqualified one only has to appear
    inside the live type, so ``int`` matches a driver-reported ``int(11)``.
    That containment check is a heuristic: ``tinyint`` also matches
    ``tinyint(1)`` and ``int`` matches ``bigint``.

    A column declared ``NOT NULL`` that is nullable in the database also
    counts as changed; the reverse does not.

    Examples:
        >>> live = LiveColumn(name="n", type="int(11)", nullable=True)
        >>> column_differs(ColumnDefinition(type="INT"), live)
        False
        >>> column_differs(ColumnDefinition(type="INT", not_null=True), live)
        True
        >>> column_differs(ColumnDefinition(type="VARCHAR", length=50),
        ...                LiveColumn(name="s", type="varchar(40)"))
        True
    """
    expected_type = definition.type.lower()
    actual_type = live.type.lower()

    if definition.length:
        if actual_type != f"{expected_type}({definition.length})":
            return True
    elif expected_type not in actual_type:
        return True

    return definition.not_null and live.nullable


def compare_schema(
    schema: TableSchema,
    live_columns: Mapping[str, LiveColumn],
) -> ColumnDiff:
    """Diff a schema against the live columns of its table.

    - Adds: schema columns missing from the live table (schema order)
    - Modifies: columns present in both whose type or NOT NULL differs
    - Drops: live columns absent from the schema (informational only)

    An empty ``live_columns`` (e.g. a failed introspection query) reports
    every schema column as an add.

    Examples:
        >>> from tablesync.schema.models import ColumnDefinition, LiveColumn
        >>> schema = {"a": ColumnDefinition(type="TEXT"),
        ...           "b": ColumnDefinition(type="INT")}
        >>> diff = compare_schema(schema, {"a": LiveColumn(name="a", type="text")})
        >>> diff.adds, diff.drops, diff.has_changes
        (['b'], [], True)
    """
    diff = ColumnDiff()

    for name, definition in schema.items():
        live = live_columns.get(name)
        if live is None:
            diff.adds.append(name)
        elif column_differs(definition, live):
            diff.modifies.append(name)

    for name in live_columns:
        if name not in schema:
            diff.drops.append(name)

    return diff
