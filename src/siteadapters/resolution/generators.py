"""Generic fallback expressions for ad-hoc node roles.

Site profiles carry hand-tuned fallback chains. When probing an unknown
page (``siteadapters resolve --expression ...``) there is no profile, so
these generic chains stand in: structural, class-based, attribute-based
and positional guesses, in that order.
"""

from __future__ import annotations

from siteadapters.models import NodeRole, NodeRoleSpec

INPUT_FALLBACKS: tuple[str, ...] = (
    # Generic inputs
    "textarea:not([disabled])",
    'input[type="text"]:not([disabled])',
    'div[contenteditable="true"]',
    '[role="textbox"]',
    # Inside forms
    "form textarea:last-of-type",
    "form input:last-of-type",
    'form [contenteditable="true"]',
    # Class names
    ".input:not([disabled])",
    ".textarea:not([disabled])",
    ".text-input:not([disabled])",
    # Attributes
    '[placeholder*="message"]',
    '[placeholder*="text"]',
    '[placeholder*="input"]',
    # Position
    "body textarea:last-of-type",
    "main textarea",
    'main [contenteditable="true"]',
)

BUTTON_FALLBACKS: tuple[str, ...] = (
    'button[type="submit"]',
    'input[type="submit"]',
    "button:not([disabled])",
    "form button:last-child",
    "form button:last-of-type",
    'form input[type="submit"]',
    ".btn",
    ".button",
    ".submit",
    ".send",
    '[aria-label*="send" i]',
    '[aria-label*="submit" i]',
    '[title*="send" i]',
    '[title*="submit" i]',
    "button:has(svg)",
    "button:has(.icon)",
    'button:has([class*="icon"])',
)

CONTAINER_FALLBACKS: tuple[str, ...] = (
    "main",
    ".container",
    ".content",
    ".chat",
    ".conversation",
    ".overflow-y-auto",
    ".overflow-auto",
    '[style*="overflow"]',
    "section",
    "article",
    ".messages",
    ".chat-messages",
    ".flex-col",
    ".flex-column",
    ".grid",
    "body > div:first-child",
    "main > div:first-child",
)


def input_expressions(base: str) -> list[str]:
    return [base, *INPUT_FALLBACKS]


def button_expressions(base: str) -> list[str]:
    return [base, *BUTTON_FALLBACKS]


def container_expressions(base: str) -> list[str]:
    return [base, *CONTAINER_FALLBACKS]


_FALLBACKS_BY_ROLE: dict[NodeRole, tuple[str, ...]] = {
    NodeRole.INPUT: INPUT_FALLBACKS,
    NodeRole.SUBMIT: BUTTON_FALLBACKS,
    NodeRole.CONTAINER: CONTAINER_FALLBACKS,
    NodeRole.INJECTION_POINT: CONTAINER_FALLBACKS,
}


def generic_spec(role: NodeRole, primary: str, *, with_fallbacks: bool = True) -> NodeRoleSpec:
    """Build a validator-less ``NodeRoleSpec`` for *role* around *primary*.

    Duplicates of *primary* are dropped from the fallback chain.
    """
    fallbacks = tuple(e for e in _FALLBACKS_BY_ROLE[role] if e != primary) if with_fallbacks else ()
    return NodeRoleSpec(primary=primary, fallbacks=fallbacks, description=f"generic {role.value}")
