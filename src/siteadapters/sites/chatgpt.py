"""ChatGPT profile and adapter (chat.openai.com, chatgpt.com)."""

from __future__ import annotations

import logging

from siteadapters.adapters.base import EnvironmentAdapter
from siteadapters.dom.matchers import (
    AttributeContains,
    AttributeEquals,
    BottomBelowViewportFraction,
    HasClass,
    HasDescendant,
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

_ICON = (
    "data:image/svg+xml;base64,PHN2ZyB3aWR0aD0iMjQiIGhlaWdodD0iMjQiIHZpZXdCb3g9IjAgMCAyNCAyNCIgZmlsbD0ibm9uZSIg"
    "eG1sbnM9Imh0dHA6Ly93d3cudzMub3JnLzIwMDAvc3ZnIj4KPHBhdGggZD0iTTEyIDJMMTMuMDkgOC4yNkwyMCA5TDEzLjA5IDE1Ljc0"
    "TDEyIDIyTDEwLjkxIDE1Ljc0TDQgOUwxMC45MSA4LjI2TDEyIDJaIiBmaWxsPSIjMDBBNjdFIi8+Cjwvc3ZnPgo="
)

CHATGPT_PROFILE = EnvironmentProfile(
    profile_id="chatgpt",
    url_patterns=(
        r"^https?://chat\.openai\.com/",
        r"^https?://chatgpt\.com/",
        r"^https?://.*\.openai\.com/chat/",
    ),
    input=NodeRoleSpec(
        primary="#prompt-textarea",
        fallbacks=(
            'textarea[data-testid="chat-input"]',
            'textarea[placeholder*="Message ChatGPT"]',
            'textarea[placeholder*="Send a message"]',
            '.ProseMirror[contenteditable="true"]',
            'div[contenteditable="true"][data-testid="chat-input"]',
            "textarea.m-0",
            "form textarea:not([disabled])",
        ),
        validator=any_of(
            AttributeEquals("role", "textbox"),
            TagIs(("textarea",)),
            AttributeContains("placeholder", ("message", "send")),
            IsContentEditable(),
        ),
        description="Main chat input textarea",
    ),
    submit=NodeRoleSpec(
        primary='button[data-testid="send-button"]',
        fallbacks=(
            'button[aria-label*="Send message"]',
            'button[aria-label*="Send"]',
            'form button[type="submit"]',
            'button:has(svg[data-icon="send"])',
            ".btn-primary:last-of-type",
            "button.absolute.p-1.rounded-md",
            "form button:not([disabled]):last-child",
        ),
        validator=all_of(
            TagIs(("button",)),
            any_of(
                AttributeContains("aria-label", ("send", "submit")),
                HasDescendant("svg"),
                HasClass("absolute"),
                MatchesExpression("form > button:last-child"),
            ),
        ),
        description="Send message button",
    ),
    container=NodeRoleSpec(
        primary='main[class*="conversation"]',
        fallbacks=(
            ".conversation-turn-container",
            '[data-testid="conversation-turn"]',
            ".text-base.gap-6",
            "main.relative.h-full",
            ".flex.flex-col.text-sm",
            'div[class*="chat"]',
            'main div[class*="conversation"]',
            ".overflow-hidden.w-full.h-full.relative.flex",
        ),
        validator=any_of(
            HasDescendant('[data-testid*="conversation"], .conversation, [class*="message"]'),
            TagIs(("main",)),
            IsScrollable(),
        ),
        description="Main chat conversation container",
    ),
    injection_point=NodeRoleSpec(
        primary='form[class*="stretch"]',
        fallbacks=(
            "form:has(textarea)",
            ".relative.flex.h-full.flex-1.flex-col",
            "main.relative.h-full",
            'div[class*="composer"]',
            ".flex.w-full.items-center",
            "form.flex.flex-row.gap-3",
            "body > div:first-child",
            "#__next",
        ),
        validator=any_of(
            HasDescendant('textarea, [contenteditable="true"]'),
            TagIs(("form",)),
            HasDescendant("form"),
            BottomBelowViewportFraction(0.5),
        ),
        description="UI injection point for floating panel",
    ),
    display=ProfileDisplay(
        display_name="ChatGPT",
        icon_url=_ICON,
        features=ProfileFeatures(supports_streaming=True, has_code_execution=True, has_file_upload=True),
    ),
    markers=DetectionMarkers(
        selectors=(
            '[data-testid="chat-input"]',
            'textarea[placeholder*="Message ChatGPT"]',
            ".text-base.gap-6",
            '[data-testid="send-button"]',
        ),
        text_tokens=("ChatGPT", "OpenAI"),
        attributes=(AttributeMarker('meta[property="og:site_name"]', "content", r"ChatGPT|OpenAI"),),
    ),
)


class ChatGPTAdapter(EnvironmentAdapter):
    """Adapter for the ChatGPT web app."""

    profile = CHATGPT_PROFILE

    async def _additional_confidence(self) -> float:
        return await self._marker_boost(
            selectors=(
                'meta[property="og:title"][content*="ChatGPT"]',
                '[data-testid="chat-input"]',
                ".text-token-text-primary",
            ),
            title_tokens=("ChatGPT",),
            text_tokens=("openai", "chatgpt"),
        )

    async def _perform_initialization(self) -> None:
        # SPA: the composer mounts after readyState reaches complete.
        await self._wait_for_marker(("textarea", '[contenteditable="true"]'))
        await self._attach_change_subscription()

    async def _perform_cleanup(self) -> None:
        logger.debug("ChatGPT adapter released")
