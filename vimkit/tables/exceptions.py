"""Custom exceptions for reading columnar tables."""


class TableError(Exception):
    def __init__(self, message: str | None = None):
        self.message = f"Table read failed: {message}" if message else "Table read failed"
        super().__init__(self.message)


class InconsistentRowCountError(TableError):
    """Raised when a column's row count disagrees with the rest of its table."""

    def __init__(self, table: str, column: str, expected: int, found: int | None = None):
        self.table = table
        self.column = column
        self.expected = expected
        self.found = found
        if found is None:
            detail = (
                f"column {column!r} of table {table!r} is not a whole number "
                f"of {expected}-byte rows"
            )
        else:
            detail = (
                f"column {column!r} of table {table!r} has {found} rows, "
                f"expected {expected}"
            )
        super().__init__(detail)


class UnsupportedColumnTypeError(TableError):
    """Raised for a column data type the reader does not understand."""

    def __init__(self, buffer_name: str, data_type: str):
        self.buffer_name = buffer_name
        self.data_type = data_type
        super().__init__(f"unsupported column type {data_type!r} in {buffer_name!r}")


class MissingTableError(TableError):
    """Raised when no buffer belongs to the requested table."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"no columns found for table {table!r}")


class InvalidColumnValueError(TableError):
    """Raised when a stored value does not fit the field it is read into."""

    def __init__(self, table: str, row: int, column: str, detail: str):
        self.table = table
        self.row = row
        self.column = column
        super().__init__(f"row {row} of table {table!r}, column {column!r}: {detail}")
