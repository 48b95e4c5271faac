"""
Namespace-agnostic ElementTree helpers shared by the dump decoders.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from collections.abc import Iterator


def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def children(node: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in list(node):
        if local_name(child.tag) == name:
            yield child


def child(node: ET.Element, name: str) -> ET.Element | None:
    return next(children(node, name), None)


def text_of(node: ET.Element | None) -> str | None:
    if node is None or node.text is None:
        return None
    value = " ".join(node.text.split())
    return value or None


def child_text(node: ET.Element, *names: str) -> str | None:
    """
    Return the text of the first named child that has non-empty text.
    """

    for name in names:
        for candidate in children(node, name):
            value = text_of(candidate)
            if value:
                return value
    return None


def name_and_tax_id(node: ET.Element) -> tuple[str | None, str | None]:
    """
    Read a party element that is either plain text or has nazev/ico children.
    """

    if len(node):
        return child_text(node, "nazev"), child_text(node, "ico")
    return text_of(node), None
