"""Custom exceptions for container decoding."""


class DecodeError(Exception):
    def __init__(self, message: str | None = None):
        self.message = (
            f"Container decode failed: {message}"
            if message
            else "Container decode failed"
        )
        super().__init__(self.message)


class BadMagicError(DecodeError):
    """Raised when the preamble does not start with the container magic."""

    def __init__(self, found: int, expected: int):
        self.found = found
        self.expected = expected
        super().__init__(f"bad magic 0x{found:X} (expected 0x{expected:X})")


class UnsupportedVersionError(DecodeError):
    """Raised when the container was written by a newer format revision."""

    def __init__(self, version: int, supported: int):
        self.version = version
        self.supported = supported
        super().__init__(
            f"unsupported version {version} (newest supported is {supported})"
        )


class TruncatedContainerError(DecodeError):
    """Raised when the preamble, directory or a data range runs past the source."""

    def __init__(self, detail: str, *, offset: int, length: int):
        self.offset = offset
        self.length = length
        super().__init__(f"truncated container: {detail} (offset {offset}, size {length})")


class MalformedContainerError(DecodeError):
    """Raised when the directory itself is inconsistent.

    Covers reversed, overlapping or unordered ranges, ranges that start
    inside the directory, duplicate names and names that are not UTF-8.
    """

    pass
