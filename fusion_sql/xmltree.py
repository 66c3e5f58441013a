"""Convert XML documents into plain dict/list/str trees.

The layout follows what BI Publisher clients usually work with: an element
with children becomes a dict keyed by child local name, repeated children
collapse into a list, a leaf becomes its stripped text, and attributes are
kept under ``@_name`` keys (``@_xsi:nil`` for the XML Schema instance
namespace). Mixed text next to children is stored under ``#text``.
"""

import xml.etree.ElementTree as ET
from typing import Any

XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"


def local_name(tag: str) -> str:
    """``{uri}Body`` -> ``Body``; prefix-free tags pass through."""
    return tag.rsplit("}", 1)[-1]


def _attr_key(name: str) -> str:
    if name.startswith("{" + XSI_NS + "}"):
        return "@_xsi:" + local_name(name)
    return "@_" + local_name(name)


def element_to_value(elem: ET.Element) -> Any:
    children = list(elem)
    attrs = {_attr_key(k): v for k, v in elem.attrib.items()}
    text = (elem.text or "").strip()
    if not children and not attrs:
        return text

    node: dict[str, Any] = dict(attrs)
    repeated: set[str] = set()
    for child in children:
        key = local_name(child.tag)
        value = element_to_value(child)
        if key not in node:
            node[key] = value
        elif key in repeated:
            node[key].append(value)
        else:
            node[key] = [node[key], value]
            repeated.add(key)
    if text:
        node["#text"] = text
    return node


def parse_document(text: str | bytes) -> dict[str, Any]:
    """Parse an XML document into ``{root_local_name: value}``.

    Raises ``xml.etree.ElementTree.ParseError`` on malformed input.
    """
    root = ET.fromstring(text)
    return {local_name(root.tag): element_to_value(root)}
