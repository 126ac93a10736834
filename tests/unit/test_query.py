"""Unit tests for node query utilities and bounded waits."""

from __future__ import annotations

import pytest

from siteadapters.document.html import HtmlDocument
from siteadapters.dom.matchers import AttributeEquals
from siteadapters.dom.query import (
    find_best_node,
    is_in_viewport,
    is_interactable,
    is_visible,
    query_all_unique,
    wait_for_node,
    wait_for_nodes,
    wait_for_ready,
)
from siteadapters.exceptions import AdapterErrorType, NodeWaitTimeoutError


async def _node(doc: HtmlDocument, expression: str):
    node = await doc.query(expression)
    assert node is not None
    return node


# ===================================================================
# Visibility and interactability
# ===================================================================


class TestVisibility:
    """``is_visible`` honours geometry and inherited style."""

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("html", "expected"),
        [
            ('<p id="t">x</p>', True),
            ('<p id="t" style="display: none">x</p>', False),
            ('<div style="display:none"><p id="t">x</p></div>', False),
            ('<p id="t" hidden>x</p>', False),
            ('<p id="t" style="visibility:hidden">x</p>', False),
            ('<div style="visibility:hidden"><p id="t" style="visibility:visible">x</p></div>', True),
            ('<p id="t" style="opacity:0">x</p>', False),
            ('<div style="opacity:0.5"><p id="t" style="opacity:0.5">x</p></div>', True),
            ('<p id="t" data-rect="0,0,0,0">x</p>', False),
            ('<p id="t" data-rect="10,10,0,5">x</p>', True),
        ],
    )
    async def test_is_visible(self, html: str, expected: bool) -> None:
        doc = HtmlDocument(html)
        assert await is_visible(await _node(doc, "#t")) is expected

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("html", "expected"),
        [
            ('<button id="t">Send</button>', True),
            ('<button id="t" disabled>Send</button>', False),
            ('<textarea id="t" readonly></textarea>', False),
            ('<div id="t" aria-disabled="true"></div>', False),
            ('<div id="t" aria-disabled="false"></div>', True),
        ],
    )
    async def test_is_interactable(self, html: str, expected: bool) -> None:
        doc = HtmlDocument(html)
        assert await is_interactable(await _node(doc, "#t")) is expected

    @pytest.mark.anyio
    async def test_is_in_viewport(self) -> None:
        doc = HtmlDocument(
            '<p id="in" data-rect="10,10,100,20"></p><p id="out" data-rect="10,790,100,20"></p>',
            viewport=(1280, 800),
        )
        assert await is_in_viewport(await _node(doc, "#in"), doc) is True
        assert await is_in_viewport(await _node(doc, "#out"), doc) is False


# ===================================================================
# Readiness
# ===================================================================


class TestWaitForReady:
    @pytest.mark.anyio
    async def test_ready_immediately(self, clock) -> None:
        assert await wait_for_ready(HtmlDocument(), 1000, clock=clock) is True
        assert clock.sleeps == []

    @pytest.mark.anyio
    async def test_becomes_ready_while_polling(self, clock) -> None:
        doc = HtmlDocument(ready_state="loading")
        clock.call_at(250, lambda: doc.set_ready_state("interactive"))

        assert await wait_for_ready(doc, 1000, clock=clock, poll_interval_ms=100) is True
        assert clock.elapsed_ms == pytest.approx(300)

    @pytest.mark.anyio
    async def test_times_out(self, clock) -> None:
        doc = HtmlDocument(ready_state="loading")

        assert await wait_for_ready(doc, 250, clock=clock, poll_interval_ms=100) is False
        assert clock.sleeps_ms == [100, 100, 50]


# ===================================================================
# Node waits
# ===================================================================


class TestWaitForNode:
    """Polling waits never outlive their budget."""

    @pytest.mark.anyio
    async def test_found_immediately(self, clock) -> None:
        doc = HtmlDocument('<textarea id="box"></textarea>')
        node = await wait_for_node(doc, "#box", 500, clock=clock)
        assert node is not None
        assert clock.sleeps == []

    @pytest.mark.anyio
    async def test_found_after_render(self, clock) -> None:
        doc = HtmlDocument("<form></form>")
        clock.call_at(120, lambda: doc.append_html("form", '<textarea id="box"></textarea>'))

        node = await wait_for_node(doc, "#box", 500, clock=clock, poll_interval_ms=50)

        assert node is not None
        assert clock.elapsed_ms == pytest.approx(150)

    @pytest.mark.anyio
    async def test_timeout_returns_none(self, clock) -> None:
        doc = HtmlDocument("<form></form>")

        assert await wait_for_node(doc, "#box", 300, clock=clock) is None
        assert clock.elapsed_ms == pytest.approx(300)

    @pytest.mark.anyio
    async def test_required_raises_timeout_error(self, clock) -> None:
        doc = HtmlDocument("<form></form>")

        with pytest.raises(NodeWaitTimeoutError) as exc_info:
            await wait_for_node(doc, "#box", 200, clock=clock, required=True)

        assert exc_info.value.error_type is AdapterErrorType.TIMEOUT
        assert exc_info.value.context["expression"] == "#box"
        assert exc_info.value.context["timeout_ms"] == 200

    @pytest.mark.anyio
    async def test_validator_must_accept(self, clock) -> None:
        doc = HtmlDocument('<div id="box" role="note"></div>')
        clock.call_at(100, lambda: doc.set_attribute("#box", "role", "textbox"))

        node = await wait_for_node(doc, "#box", 500, validator=AttributeEquals("role", "textbox"), clock=clock)

        assert node is not None
        assert clock.elapsed_ms == pytest.approx(100)

    @pytest.mark.anyio
    async def test_invalid_expression_gives_up_immediately(self, clock) -> None:
        doc = HtmlDocument("<div></div>")

        assert await wait_for_node(doc, "div[", 5000, clock=clock) is None
        assert clock.sleeps == []

    @pytest.mark.anyio
    async def test_zero_budget_queries_once(self, clock) -> None:
        doc = HtmlDocument('<p id="x"></p>')
        assert await wait_for_node(doc, "#x", 0, clock=clock) is not None
        assert await wait_for_node(doc, "#y", 0, clock=clock) is None
        assert clock.sleeps == []


class TestWaitForNodes:
    @pytest.mark.anyio
    async def test_any_match_returns(self, clock) -> None:
        doc = HtmlDocument('<textarea></textarea>')

        found = await wait_for_nodes(doc, ['[contenteditable="true"]', "textarea"], 500, clock=clock)

        assert len(found) == 1
        assert await found[0].tag_name() == "textarea"

    @pytest.mark.anyio
    async def test_require_all_waits_for_every_expression(self, clock) -> None:
        doc = HtmlDocument("<form><textarea></textarea></form>")
        clock.call_at(200, lambda: doc.append_html("form", "<button></button>"))

        found = await wait_for_nodes(doc, ["textarea", "button"], 1000, require_all=True, clock=clock)

        assert len(found) == 2
        assert clock.elapsed_ms == pytest.approx(200)

    @pytest.mark.anyio
    async def test_returns_partial_on_timeout(self, clock) -> None:
        doc = HtmlDocument("<form><textarea></textarea></form>")

        found = await wait_for_nodes(doc, ["textarea", "button"], 300, require_all=True, clock=clock)

        assert len(found) == 1

    @pytest.mark.anyio
    async def test_invalid_expressions_are_skipped(self, clock) -> None:
        doc = HtmlDocument("<textarea></textarea>")
        found = await wait_for_nodes(doc, ["div[", "textarea"], 100, clock=clock)
        assert len(found) == 1


# ===================================================================
# Multi-expression helpers
# ===================================================================


class TestMultiExpression:
    @pytest.mark.anyio
    async def test_query_all_unique_deduplicates(self) -> None:
        doc = HtmlDocument('<p class="a b"></p><p class="b"></p>')

        nodes = await query_all_unique(doc, [".a", ".b", "p", "p["])

        assert len(nodes) == 2

    @pytest.mark.anyio
    async def test_find_best_node_skips_hidden_and_disabled(self) -> None:
        doc = HtmlDocument(
            '<textarea id="a" hidden></textarea><textarea id="b" disabled></textarea><textarea id="c"></textarea>'
        )

        node = await find_best_node(doc, ["#a", "#b", "div[", "#c"])

        assert node is not None
        assert await node.get_attribute("id") == "c"

    @pytest.mark.anyio
    async def test_find_best_node_applies_validator(self) -> None:
        doc = HtmlDocument('<div id="a" role="note"></div><div id="b" role="textbox"></div>')

        node = await find_best_node(doc, ["#a", "#b"], AttributeEquals("role", "textbox"))

        assert await node.get_attribute("id") == "b"

    @pytest.mark.anyio
    async def test_find_best_node_none(self) -> None:
        assert await find_best_node(HtmlDocument("<p></p>"), ["#missing"]) is None
