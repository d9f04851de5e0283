"""Hex colour helpers shared by tag validation and import sanitising."""

import re

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def normalize_hex_color(value: object) -> str | None:
    """Return ``#RRGGBB`` in upper case, or ``None`` if ``value`` is not one."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not HEX_COLOR_RE.match(trimmed):
        return None
    return trimmed.upper()
