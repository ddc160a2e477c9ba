"""
Input validation utilities for snapzip.

"Trust, but verify. Especially user input."
"""

import ipaddress
import re
from pathlib import PurePosixPath

from .errors import UsageError


class ValidationError(UsageError):
    """Raised when input validation fails."""

    pass


# RFC 1123 hostname label
_HOST_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


def split_csv(value: str | list[str] | None) -> list[str]:
    """
    Split a comma-separated option into a clean list.

    Accepts either a single "a,b,c" string or a list of such strings
    (typer passes a list when an option is repeated).

    Examples:
        "Documents, Pictures" -> ["Documents", "Pictures"]
        ["*.log", "*.tmp,*.bak"] -> ["*.log", "*.tmp", "*.bak"]
        None -> []
    """
    if value is None:
        return []
    raw = [value] if isinstance(value, str) else list(value)
    items: list[str] = []
    for chunk in raw:
        for part in chunk.split(","):
            part = part.strip()
            if part:
                items.append(part)
    return items


def validate_port(port: int) -> int:
    """
    Validate a TCP port number.

    Raises:
        ValidationError: If the port is outside 1-65535
    """
    if not isinstance(port, int) or isinstance(port, bool):
        raise ValidationError(f"Port must be an integer, got {port!r}")
    if port < 1 or port > 65535:
        raise ValidationError(f"Port must be between 1 and 65535, got {port}")
    return port


def validate_compress_level(level: int) -> int:
    """Validate a compression level (0 = store only, 9 = smallest)."""
    if not isinstance(level, int) or isinstance(level, bool):
        raise ValidationError(f"Compression level must be an integer, got {level!r}")
    if level < 0 or level > 9:
        raise ValidationError(f"Compression level must be between 0 and 9, got {level}")
    return level


def validate_host(host: str | None) -> str:
    """
    Validate a peer address: an IPv4/IPv6 literal or a hostname.

    Returns:
        The stripped host string

    Raises:
        ValidationError: If the host is empty or malformed
    """
    if host is None or not host.strip():
        raise ValidationError("Peer address is required (--ip)")

    host = host.strip()

    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        pass

    if len(host) > 253:
        raise ValidationError(f"Host name too long: '{host}'")

    labels = host.rstrip(".").split(".")
    if not all(_HOST_LABEL.match(label) for label in labels):
        raise ValidationError(f"Invalid peer address: '{host}'")

    return host


def validate_archive_name(name: str) -> str:
    """
    Validate an archive file name and ensure it ends in .zip.

    Names must be plain file names: no directories, no traversal.

    Raises:
        ValidationError: If the name is empty or contains path separators
    """
    if not name or not name.strip():
        raise ValidationError("Archive name must be a non-empty string")

    name = name.strip()

    if "/" in name or "\\" in name:
        raise ValidationError(f"Archive name must not contain path separators: '{name}'")

    if name in (".", "..") or name.startswith(".."):
        raise ValidationError("Path traversal patterns are not allowed")

    if not name.lower().endswith(".zip"):
        name = f"{name}.zip"

    return name


def validate_format_option(format: str, allowed: list[str] = ["json", "yaml"]) -> str:
    """
    Validate an output format option.

    Returns:
        Lowercase format string if valid

    Raises:
        ValidationError: If format is not in allowed list
    """
    format_lower = format.lower().strip()

    if format_lower not in allowed:
        allowed_str = ", ".join(f"'{f}'" for f in allowed)
        raise ValidationError(f"Invalid format '{format}'. Allowed formats: {allowed_str}")

    return format_lower


def validate_member_path(member: str) -> PurePosixPath:
    """
    Validate an archive entry name before extraction.

    Raises:
        ValidationError: If the entry is absolute or escapes the staging root
    """
    normalized = member.replace("\\", "/")
    path = PurePosixPath(normalized)

    if path.is_absolute() or re.match(r"^[A-Za-z]:", normalized):
        raise ValidationError(f"Absolute path in archive: {member}")

    if ".." in path.parts:
        raise ValidationError(f"Path traversal detected in archive entry: {member}")

    return path
