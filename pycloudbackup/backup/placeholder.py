"""Decoding of cloud placeholder files.

An iCloud Drive placeholder (``.photo.jpg.icloud``) is a small property
list describing the item it stands in for::

    {"NSURLNameKey": "photo.jpg", "NSURLFileSizeKey": 1024, ...}

Both binary and XML property lists are accepted.
"""

import plistlib
from dataclasses import dataclass
from pathlib import PurePosixPath, PureWindowsPath
from xml.parsers.expat import ExpatError

from ..exceptions import ClassificationError

NAME_KEY = "NSURLNameKey"
SIZE_KEY = "NSURLFileSizeKey"


@dataclass(frozen=True)
class PlaceholderInfo:
    """Metadata decoded from a placeholder payload."""

    real_name: str
    """Name the item will have once materialized"""

    size_bytes: int
    """Size of the materialized item"""


def _validate_name(name: str) -> None:
    if not name or name in (".", ".."):
        raise ClassificationError(f"Placeholder names an invalid item: {name!r}")
    # The name is joined onto local paths, it must stay a single component
    if (
        PurePosixPath(name).name != name
        or PureWindowsPath(name).name != name
        or "\x00" in name
    ):
        raise ClassificationError(
            f"Placeholder name is not a plain file name: {name!r}"
        )


def decode_placeholder(data: bytes) -> PlaceholderInfo:
    """Decode a placeholder payload.

    Args:
        data: Raw bytes of the placeholder file

    Returns:
        PlaceholderInfo with the real name and size

    Raises:
        ClassificationError: If the payload is not a valid placeholder
    """
    try:
        payload = plistlib.loads(data)
    except (
        plistlib.InvalidFileException,
        ExpatError,
        ValueError,
        TypeError,
        OverflowError,
    ) as e:
        raise ClassificationError(f"Not a property list: {e}") from e

    if not isinstance(payload, dict):
        raise ClassificationError("Placeholder payload is not a dictionary")

    name = payload.get(NAME_KEY)
    size = payload.get(SIZE_KEY)
    if not isinstance(name, str):
        raise ClassificationError(f"Placeholder has no {NAME_KEY}")
    # bool is an int subclass, but never a valid size
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        raise ClassificationError(f"Placeholder has no valid {SIZE_KEY}")

    _validate_name(name)
    return PlaceholderInfo(real_name=name, size_bytes=size)


def encode_placeholder(
    real_name: str, size_bytes: int, fmt: plistlib.PlistFormat = plistlib.FMT_BINARY
) -> bytes:
    """Build a placeholder payload, e.g. to stage test fixtures."""
    return plistlib.dumps({NAME_KEY: real_name, SIZE_KEY: size_bytes}, fmt=fmt)
