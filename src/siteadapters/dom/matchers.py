"""Typed node matchers used as node-role validators.

A ``NodeMatcher`` answers one question about a candidate node: is this
really the node the role asks for? Matchers are small frozen dataclasses
that compose with ``AnyOf`` / ``AllOf`` / ``Not``, so a profile declares
its validators as data instead of ad-hoc callables:

    AllOf((
        AnyOf((IsContentEditable(), TagIs(("textarea",)), AttributeEquals("role", "textbox"))),
        AnyOf((AttributeContains("placeholder", ("claude", "message")), HasClass("ProseMirror"))),
    ))

Matchers receive the host as well as the node, for checks that need
document context such as the viewport height.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from siteadapters.document.base import DocumentHost, NodeHandle


@runtime_checkable
class NodeMatcher(Protocol):
    """Node-match capability."""

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        """Return True if *node* satisfies this matcher."""
        ...


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnyOf:
    """Matches when at least one inner matcher does (short-circuits)."""

    matchers: tuple[NodeMatcher, ...]

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        for matcher in self.matchers:
            if await matcher.matches(node, host):
                return True
        return False


@dataclass(frozen=True)
class AllOf:
    """Matches when every inner matcher does (short-circuits)."""

    matchers: tuple[NodeMatcher, ...]

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        for matcher in self.matchers:
            if not await matcher.matches(node, host):
                return False
        return True


@dataclass(frozen=True)
class Not:
    matcher: NodeMatcher

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return not await self.matcher.matches(node, host)


# ---------------------------------------------------------------------------
# Leaf matchers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TagIs:
    """Tag name is one of ``tags`` (lower case)."""

    tags: tuple[str, ...]

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return (await node.tag_name()) in self.tags


@dataclass(frozen=True)
class AttributeEquals:
    name: str
    value: str

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return (await node.get_attribute(self.name)) == self.value


@dataclass(frozen=True)
class AttributeContains:
    """Attribute contains any of ``needles`` (case-insensitive)."""

    name: str
    needles: tuple[str, ...]

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        value = (await node.get_attribute(self.name) or "").lower()
        return bool(value) and any(needle.lower() in value for needle in self.needles)


@dataclass(frozen=True)
class HasClass:
    """Class list contains ``name`` exactly, or any class containing it when ``partial``."""

    name: str
    partial: bool = False

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        if not self.partial:
            return await node.has_class(self.name)
        classes = (await node.get_attribute("class")) or ""
        return self.name in classes


@dataclass(frozen=True)
class IsContentEditable:
    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return (await node.get_attribute("contenteditable")) == "true"


@dataclass(frozen=True)
class HasDescendant:
    """At least one descendant matches ``expression``."""

    expression: str

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return (await node.query(self.expression)) is not None


@dataclass(frozen=True)
class MatchesExpression:
    """The node itself matches ``expression`` (e.g. ``form > :last-child``)."""

    expression: str

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return await node.matches(self.expression)


@dataclass(frozen=True)
class HasMultipleChildren:
    minimum: int = 2

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return (await node.child_count()) >= self.minimum


@dataclass(frozen=True)
class IsScrollable:
    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        return (await node.scroll_metrics()).is_scrollable


@dataclass(frozen=True)
class BottomBelowViewportFraction:
    """Node's bottom edge sits below ``fraction`` of the viewport height."""

    fraction: float

    async def matches(self, node: NodeHandle, host: DocumentHost) -> bool:
        box = await node.bounding_box()
        if box is None:
            return False
        _, height = await host.viewport_size()
        return box.bottom > height * self.fraction


def any_of(*matchers: NodeMatcher) -> AnyOf:
    return AnyOf(tuple(matchers))


def all_of(*matchers: NodeMatcher) -> AllOf:
    return AllOf(tuple(matchers))
