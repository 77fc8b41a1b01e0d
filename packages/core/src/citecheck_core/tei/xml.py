"""Namespace-agnostic access to extraction-service markup.

Elements and attributes are matched by local name only, so documents with
or without the TEI namespace declaration (or with a different prefix) read
the same way. Nothing in here raises on missing data.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator

logger = logging.getLogger(__name__)

Element = ET.Element


def local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def attr(node: Element | None, name: str) -> str:
    if node is None:
        return ""
    for key, value in node.attrib.items():
        if local_name(key) == name:
            return value.strip()
    return ""


def _matches(node: Element, name: str, attrs: dict[str, str | tuple[str, ...]]) -> bool:
    if local_name(node.tag) != name:
        return False
    for key, expected in attrs.items():
        actual = attr(node, key)
        allowed = (expected,) if isinstance(expected, str) else expected
        if actual.lower() not in {value.lower() for value in allowed}:
            return False
    return True


def descendants(
    node: Element | None, name: str, **attrs: str | tuple[str, ...]
) -> Iterator[Element]:
    if node is None:
        return
    for candidate in node.iter():
        if candidate is node:
            continue
        if _matches(candidate, name, attrs):
            yield candidate


def children(node: Element | None, name: str, **attrs: str | tuple[str, ...]) -> list[Element]:
    if node is None:
        return []
    return [child for child in node if _matches(child, name, attrs)]


def first(node: Element | None, name: str, **attrs: str | tuple[str, ...]) -> Element | None:
    return next(descendants(node, name, **attrs), None)


def node_text(node: Element | None) -> str:
    if node is None:
        return ""
    return " ".join("".join(node.itertext()).split())


def first_text(node: Element | None, name: str, **attrs: str | tuple[str, ...]) -> str:
    return node_text(first(node, name, **attrs))


class TeiTree:
    """Parsed markup plus the parent links ElementTree does not keep."""

    def __init__(self, root: Element | None) -> None:
        self.root = root
        self._parents: dict[Element, Element] = {}
        if root is not None:
            for parent in root.iter():
                for child in parent:
                    self._parents[child] = parent

    @classmethod
    def parse(cls, markup: str | bytes | None) -> TeiTree:
        if not markup:
            return cls(None)
        try:
            root = ET.fromstring(markup)
        except (ET.ParseError, ValueError) as exc:
            logger.warning("Could not parse extraction markup: %s", exc)
            return cls(None)
        return cls(root)

    @property
    def empty(self) -> bool:
        return self.root is None

    def parent(self, node: Element) -> Element | None:
        return self._parents.get(node)

    def ancestor(self, node: Element, name: str) -> Element | None:
        current = self._parents.get(node)
        while current is not None:
            if local_name(current.tag) == name:
                return current
            current = self._parents.get(current)
        return None

    def find_all(self, name: str, **attrs: str | tuple[str, ...]) -> list[Element]:
        if self.root is None:
            return []
        found = list(descendants(self.root, name, **attrs))
        if _matches(self.root, name, attrs):
            found.insert(0, self.root)
        return found

    def find(self, name: str, **attrs: str | tuple[str, ...]) -> Element | None:
        found = self.find_all(name, **attrs)
        return found[0] if found else None
