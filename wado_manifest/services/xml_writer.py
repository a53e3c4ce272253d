"""XML attribute writing helpers for manifest assembly."""

from typing import Any, Iterable
from xml.sax.saxutils import escape

_ATTRIBUTE_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(text: str) -> str:
    """
    Escape XML special characters for use in attribute values.

    Examples:
    - 'a & b' → 'a &amp; b'
    - '<x y="1">' → '&lt;x y=&quot;1&quot;&gt;'
    """
    return escape(text, _ATTRIBUTE_ENTITIES)


def add_xml_attribute(name: str, value: Any, parts: list[str]) -> None:
    """
    Append a `name="value" ` attribute to the output parts.

    Nothing is written when value is None, so absent fields never show up as
    empty attributes. Booleans are written as true/false.

    Args:
        name: Attribute name
        value: Attribute value (None to skip)
        parts: Output buffer the attribute is appended to
    """
    if value is None:
        return
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    parts.append(f'{name}="{escape_xml(text)}" ')


def format_override_tags(tags: Iterable[int] | None) -> str | None:
    """
    Format DICOM tag overrides as a comma separated hex list.

    Examples:
    - [0x00100010, 0x00100020] → "0x00100010,0x00100020"
    - [] → None
    """
    if not tags:
        return None
    return ",".join(f"0x{tag:08X}" for tag in tags)
