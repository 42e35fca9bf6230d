"""
Hardened XML parsing.

Inbound SBD envelopes and SMP responses come from outside the trust
boundary. Entity expansion, DTD loading and network access are disabled.
"""

from __future__ import annotations

from typing import Optional

from lxml import etree


def secure_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=False,
        remove_comments=True,
    )


def parse_xml(data: bytes) -> etree._Element:
    """Parse bytes into a root element. Raises etree.XMLSyntaxError."""
    return etree.fromstring(data, parser=secure_parser())


def child_text(element: Optional[etree._Element], path: str, namespaces: dict) -> Optional[str]:
    """Stripped text of the first match of ``path``, or None if absent or empty."""
    if element is None:
        return None
    found = element.find(path, namespaces)
    if found is None or found.text is None:
        return None
    text = found.text.strip()
    return text or None
