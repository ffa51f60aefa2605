from vimkit.container.decoder import (
    MAGIC,
    SUPPORTED_VERSION,
    BufferRange,
    Container,
    ContainerHeader,
    NamedBuffer,
    decode,
    decode_nested,
)
from vimkit.container.exceptions import (
    BadMagicError,
    DecodeError,
    MalformedContainerError,
    TruncatedContainerError,
    UnsupportedVersionError,
)
from vimkit.container.source import ByteSource

__all__ = [
    "MAGIC",
    "SUPPORTED_VERSION",
    "BadMagicError",
    "BufferRange",
    "ByteSource",
    "Container",
    "ContainerHeader",
    "DecodeError",
    "MalformedContainerError",
    "NamedBuffer",
    "TruncatedContainerError",
    "UnsupportedVersionError",
    "decode",
    "decode_nested",
]
