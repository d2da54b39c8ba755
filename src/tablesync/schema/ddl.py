"""MySQL DDL generation from registered schemas.

Pure string building -- no I/O.  One column-clause builder is shared by
``CREATE TABLE`` and ``ALTER TABLE`` so a column is rendered identically in
both.

Usage:
    from tablesync.schema.ddl import generate_create_table_sql

    sql = generate_create_table_sql("bans", registry.get("bans"))
"""

from tablesync.schema.models import ColumnDefinition, ColumnDiff, TableSchema

# Unquoted DEFAULT values.
_DEFAULT_KEYWORDS = {"CURRENT_TIMESTAMP", "NULL"}

TABLE_OPTIONS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"


def quote_identifier(name: str) -> str:
    """Backtick-quote a table or column name.

    Examples:
        >>> quote_identifier("group")
        '`group`'
        >>> quote_identifier("odd`name")
        '`odd``name`'
    """
    return "`" + name.replace("`", "``") + "`"


def build_column_sql(name: str, definition: ColumnDefinition) -> str:
    """Render one column clause.

    Order: type with optional length, ``AUTO_INCREMENT``, ``NOT NULL``,
    ``DEFAULT``, ``ON UPDATE``.

    Example:
        >>> build_column_sql("id", ColumnDefinition(type="INT", auto_increment=True))
        '`id` INT AUTO_INCREMENT'
    """
    col = f"{quote_identifier(name)} {definition.type}"
    if definition.length:
        col += f"({definition.length})"

    if definition.auto_increment:
        col += " AUTO_INCREMENT"

    if definition.not_null:
        col += " NOT NULL"

    if definition.default is not None:
        if definition.default.upper() in _DEFAULT_KEYWORDS:
            col += f" DEFAULT {definition.default.upper()}"
        else:
            literal = definition.default.replace("'", "''")
            col += f" DEFAULT '{literal}'"

    if definition.on_update:
        col += f" ON UPDATE {definition.on_update}"

    return col


def generate_create_table_sql(table: str, schema: TableSchema) -> str:
    """Build ``CREATE TABLE IF NOT EXISTS`` for a schema.

    Adds one composite ``PRIMARY KEY`` clause over every primary column and
    one ``UNIQUE KEY`` clause per unique, non-primary column.
    """
    clauses: list[str] = []
    primary_keys: list[str] = []
    unique_keys: list[str] = []

    for name, definition in schema.items():
        clauses.append(build_column_sql(name, definition))
        if definition.primary:
            primary_keys.append(quote_identifier(name))
        elif definition.unique:
            unique_keys.append(quote_identifier(name))

    if primary_keys:
        clauses.append(f"PRIMARY KEY ({', '.join(primary_keys)})")

    for key in unique_keys:
        clauses.append(f"UNIQUE KEY ({key})")

    body = ",\n  ".join(clauses)
    return (
        f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} (\n"
        f"  {body}\n"
        f") {TABLE_OPTIONS}"
    )


def generate_alter_sql(table: str, schema: TableSchema, diff: ColumnDiff) -> list[str]:
    """Build the ALTER statements that bring a live table up to its schema.

    ``ADD COLUMN`` per added column (plus ``ADD UNIQUE KEY`` for unique,
    non-primary ones) then ``MODIFY COLUMN`` per modified column.  Extra
    live columns (``diff.drops``) never produce SQL.
    """
    quoted_table = quote_identifier(table)
    statements: list[str] = []

    for name in diff.adds:
        definition = schema[name]
        statements.append(
            f"ALTER TABLE {quoted_table} ADD COLUMN {build_column_sql(name, definition)}"
        )
        if definition.unique and not definition.primary:
            statements.append(
                f"ALTER TABLE {quoted_table} ADD UNIQUE KEY ({quote_identifier(name)})"
            )

    for name in diff.modifies:
        statements.append(
            f"ALTER TABLE {quoted_table} MODIFY COLUMN "
            f"{build_column_sql(name, schema[name])}"
        )

    return statements


def generate_drop_table_sql(table: str) -> str:
    return f"DROP TABLE IF EXISTS {quote_identifier(table)}"
