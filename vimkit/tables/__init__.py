from vimkit.tables.exceptions import (
    InconsistentRowCountError,
    InvalidColumnValueError,
    MissingTableError,
    TableError,
    UnsupportedColumnTypeError,
)
from vimkit.tables.reader import (
    EMPTY_INDEX,
    Column,
    ColumnName,
    ColumnType,
    Table,
    TableSource,
    read_table,
    table_names,
)
from vimkit.tables.strings import StringPool

__all__ = [
    "EMPTY_INDEX",
    "Column",
    "ColumnName",
    "ColumnType",
    "InconsistentRowCountError",
    "InvalidColumnValueError",
    "MissingTableError",
    "StringPool",
    "Table",
    "TableError",
    "TableSource",
    "UnsupportedColumnTypeError",
    "read_table",
    "table_names",
]
