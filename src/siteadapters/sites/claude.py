"""Claude profile and adapter (claude.ai, anthropic.com).

Claude's composer is a ProseMirror ``contenteditable`` div, so this adapter
also exposes ``get_input_text`` / ``set_input_text`` that handle both the
rich-text editor and a plain ``textarea``.
"""

from __future__ import annotations

import logging

from siteadapters.adapters.base import EnvironmentAdapter
from siteadapters.document.base import NodeHandle
from siteadapters.dom.matchers import (
    AttributeContains,
    AttributeEquals,
    BottomBelowViewportFraction,
    HasClass,
    HasDescendant,
    HasMultipleChildren,
    IsContentEditable,
    IsScrollable,
    MatchesExpression,
    TagIs,
    all_of,
    any_of,
)
from siteadapters.models import (
    AttributeMarker,
    DetectionMarkers,
    EnvironmentProfile,
    NodeRoleSpec,
    ProfileDisplay,
    ProfileFeatures,
)

logger = logging.getLogger(__name__)

EDITOR_EXPRESSION = ".ProseMirror"

_ICON = (
    "data:image/svg+xml;base64,PHN2ZyB3aWR0aD0iMjQiIGhlaWdodD0iMjQiIHZpZXdCb3g9IjAgMCAyNCAyNCIgZmlsbD0ibm9uZSIg"
    "eG1sbnM9Imh0dHA6Ly93d3cudzMub3JnLzIwMDAvc3ZnIj4KPGNpcmNsZSBjeD0iMTIiIGN5PSIxMiIgcj0iMTAiIGZpbGw9IiNEOTdC"
    "MDAiLz4KPHBhdGggZD0iTTggMTJMMTIgOEwxNiAxMkwxMiAxNkw4IDEyWiIgZmlsbD0iI0ZGRkZGRiIvPgo8L3N2Zz4K"
)

CLAUDE_PROFILE = EnvironmentProfile(
    profile_id="claude",
    url_patterns=(
        r"^https?://claude\.ai/",
        r"^https?://.*\.anthropic\.com/",
        r"^https?://console\.anthropic\.com/",
    ),
    input=NodeRoleSpec(
        primary='div[contenteditable="true"][data-testid="chat-input"]',
        fallbacks=(
            'textarea[placeholder*="Talk with Claude"]',
            'textarea[placeholder*="Message Claude"]',
            'div[contenteditable="true"].ProseMirror',
            '[data-testid="message-input"]',
            ".composer textarea",
            'div[role="textbox"][contenteditable="true"]',
            "textarea:not([disabled]):last-of-type",
            'form div[contenteditable="true"]',
        ),
        validator=all_of(
            any_of(IsContentEditable(), TagIs(("textarea",)), AttributeEquals("role", "textbox")),
            any_of(
                AttributeContains("placeholder", ("claude", "talk", "message")),
                HasClass("ProseMirror"),
                HasDescendant(EDITOR_EXPRESSION),
            ),
        ),
        description="Main chat input (contenteditable div or textarea)",
    ),
    submit=NodeRoleSpec(
        primary='button[data-testid="send-message"]',
        fallbacks=(
            'button[aria-label*="Send message"]',
            'button[aria-label*="Send"]',
            'form button[type="submit"]',
            'button:has(svg[data-icon="send"])',
            'button:has(svg[data-testid="send-icon"])',
            ".send-button",
            "button.bg-accent-main-100",
            "form button:not([disabled]):last-child",
        ),
        validator=all_of(
            TagIs(("button",)),
            any_of(
                AttributeContains("aria-label", ("send", "submit")),
                HasDescendant('svg[data-testid*="send"], svg[data-icon*="send"]'),
                HasClass("bg-accent-main-100"),
                HasClass("send-button"),
                MatchesExpression("form > button:last-child"),
            ),
        ),
        description="Send message button",
    ),
    container=NodeRoleSpec(
        primary='div[data-testid="chat-messages"]',
        fallbacks=(
            ".conversation-container",
            '[data-testid="conversation"]',
            'main div[class*="messages"]',
            ".chat-messages",
            'div[class*="conversation"]',
            "main.flex.flex-col",
            '.overflow-y-auto:has([data-testid*="message"])',
            'div:has(> div[data-testid*="message"])',
        ),
        validator=any_of(
            HasDescendant('[data-testid*="message"], .message, [class*="message"]'),
            IsScrollable(),
            HasMultipleChildren(2),
        ),
        description="Main chat messages container",
    ),
    injection_point=NodeRoleSpec(
        primary='div[class*="composer"]',
        fallbacks=(
            'form:has(div[contenteditable="true"])',
            "form:has(textarea)",
            ".message-input-container",
            'div:has([data-testid="chat-input"])',
            "main > div:last-child",
            ".flex.flex-col.gap-2:has(textarea)",
            'body > div[id^="__next"]',
            "main.relative",
        ),
        validator=any_of(
            HasDescendant('textarea, [contenteditable="true"]'),
            HasClass("composer", partial=True),
            HasDescendant('[class*="composer"]'),
            BottomBelowViewportFraction(0.4),
        ),
        description="UI injection point for floating panel",
    ),
    display=ProfileDisplay(
        display_name="Claude",
        icon_url=_ICON,
        features=ProfileFeatures(supports_streaming=True, has_file_upload=True, uses_content_editable=True),
    ),
    markers=DetectionMarkers(
        selectors=(
            '[data-testid="chat-input"]',
            'textarea[placeholder*="Talk with Claude"]',
            ".claude-chat",
            '[data-testid="send-message"]',
        ),
        text_tokens=("Claude", "Anthropic"),
        attributes=(AttributeMarker('meta[property="og:site_name"]', "content", r"Claude|Anthropic"),),
    ),
)


class ClaudeAdapter(EnvironmentAdapter):
    """Adapter for claude.ai and the Anthropic console."""

    profile = CLAUDE_PROFILE

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._editor: NodeHandle | None = None

    @property
    def editor(self) -> NodeHandle | None:
        """The rich-text editor node found during initialization, if any."""
        return self._editor

    async def _additional_confidence(self) -> float:
        return await self._marker_boost(
            selectors=(
                'meta[property="og:title"][content*="Claude"]',
                '[data-testid="chat-input"]',
                EDITOR_EXPRESSION,
                '[class*="anthropic"]',
            ),
            title_tokens=("Claude",),
            text_tokens=("anthropic", "claude"),
        )

    async def _perform_initialization(self) -> None:
        await self._wait_for_marker(('div[contenteditable="true"]', "textarea"))
        await self._attach_change_subscription()
        # Optional: a plain textarea composer has no editor node.
        self._editor = await self._wait_for_optional(EDITOR_EXPRESSION, self._adapter_settings.editor_timeout_ms)
        if self._editor is not None:
            logger.debug("Claude rich-text editor detected")

    async def _perform_cleanup(self) -> None:
        self._editor = None

    # ------------------------------------------------------------------
    # Input text
    # ------------------------------------------------------------------

    async def get_input_text(self) -> str:
        """Current text of the input node, ``""`` when it cannot be found."""
        result = await self.find_input_element()
        if result.node is None:
            return ""
        node = result.node
        if (await node.get_attribute("contenteditable")) == "true":
            return await node.text_content()
        if (await node.tag_name()) == "textarea":
            return await node.input_value()
        return ""

    async def set_input_text(self, text: str) -> bool:
        """Replace the input's text; ``False`` when no writable input was found."""
        result = await self.find_input_element()
        if result.node is None:
            return False
        node = result.node
        try:
            if (await node.get_attribute("contenteditable")) == "true" or (await node.tag_name()) == "textarea":
                await node.set_text(text)
                return True
        except Exception as exc:
            logger.warning("Failed to set Claude input text: %s", exc)
        return False
