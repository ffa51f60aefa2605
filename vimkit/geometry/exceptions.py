"""Custom exceptions for geometry attribute parsing and assembly."""


class AssemblyError(Exception):
    def __init__(self, message: str | None = None):
        self.message = (
            f"Attribute assembly failed: {message}"
            if message
            else "Attribute assembly failed"
        )
        super().__init__(self.message)


class InvalidAttributeDescriptorError(AssemblyError):
    """Raised when a buffer name does not follow the attribute grammar."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"invalid attribute descriptor {name!r}: {reason}")


class InconsistentAttributeSizeError(AssemblyError):
    """Raised when a buffer length is not a whole number of items."""

    def __init__(self, name: str, byte_length: int, item_size: int):
        self.name = name
        self.byte_length = byte_length
        self.item_size = item_size
        super().__init__(
            f"attribute {name!r} has {byte_length} bytes, "
            f"not a multiple of its {item_size}-byte item size"
        )
