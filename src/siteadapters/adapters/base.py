"""Environment adapter base class.

An adapter binds one ``EnvironmentProfile`` to a live ``DocumentHost``. It
answers "is this my site, and how sure am I?" and resolves the profile's
four node roles through a ``FallbackResolver``.

Lifecycle::

    UNINITIALIZED -> INITIALIZING -> INITIALIZED -> CLEANED_UP
          ^               |
          +---- failure --+

``initialize()`` is idempotent and concurrent callers share the in-flight
initialization. A cleaned-up adapter cannot be re-initialized; construct a
new one instead.

Subclasses set ``profile`` and implement ``_additional_confidence``,
``_perform_initialization`` and ``_perform_cleanup``.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Callable, ClassVar, Sequence

from siteadapters.clock import Clock, SystemClock, elapsed_ms
from siteadapters.detection.detector import dom_score
from siteadapters.dom.query import wait_for_node, wait_for_nodes, wait_for_ready
from siteadapters.exceptions import InitializationError, InvalidExpressionError
from siteadapters.metrics import ResolutionMetrics
from siteadapters.models import NodeRole
from siteadapters.resolution.resolver import FallbackResolver
from siteadapters.settings import get_settings

if TYPE_CHECKING:
    from siteadapters.document.base import ChangeCallback, ContentChange, DocumentHost, NodeHandle, Subscription
    from siteadapters.models import EnvironmentProfile, NodeResolutionResult
    from siteadapters.settings import Settings

logger = logging.getLogger(__name__)


class AdapterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"
    CLEANED_UP = "cleaned_up"


class EnvironmentAdapter(abc.ABC):
    """Detection and node resolution for one environment profile.

    Args:
        host: Document the adapter works against.
        settings: Application settings (defaults to ``get_settings()``).
        clock: Time source shared by waits, retries and metrics.
    """

    profile: ClassVar[EnvironmentProfile]

    def __init__(
        self,
        host: DocumentHost,
        *,
        settings: Settings | None = None,
        clock: Clock | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._host = host
        self._clock = clock or SystemClock()
        self._detection_settings = settings.detection
        self._adapter_settings = settings.adapter
        self._resolver = FallbackResolver.from_settings(host, settings.resolver, clock=self._clock)
        self._state = AdapterState.UNINITIALIZED
        self._init_task: asyncio.Task[None] | None = None
        self._subscription: Subscription | None = None
        self._listeners: list[ChangeCallback] = []
        self.metrics = ResolutionMetrics()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(profile_id={self.profile_id!r}, state={self._state.value})"

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def profile_id(self) -> str:
        return self.profile.profile_id

    @property
    def display_name(self) -> str:
        return self.profile.display.display_name

    @property
    def host(self) -> DocumentHost:
        return self._host

    @property
    def resolver(self) -> FallbackResolver:
        return self._resolver

    @property
    def state(self) -> AdapterState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is AdapterState.INITIALIZED

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect(self, url: str | None = None) -> float:
        """Confidence in ``[0, 1]`` that *url* (default: host URL) is this profile.

        0 when no URL pattern matches; otherwise the URL weight plus the
        weighted structural score plus the adapter's own boost, capped at 1.0.
        """
        started = self._clock.monotonic()
        if url is not None:
            target = url
        else:
            try:
                target = await self._host.current_url()
            except Exception as exc:
                logger.warning("%s: could not read host URL: %s", self.profile_id, exc)
                return 0.0
        if not self.profile.matches_url(target):
            return 0.0

        settings = self._detection_settings
        structure = await dom_score(self._host, self.profile.markers)
        try:
            boost = await self._additional_confidence()
        except Exception as exc:
            logger.debug("%s: additional detection failed: %s", self.profile_id, exc)
            boost = 0.0
        boost = min(max(boost, 0.0), settings.max_additional_confidence)

        confidence = min(settings.url_weight + structure * settings.dom_weight + boost, 1.0)
        self.metrics.record_detection(elapsed_ms(self._clock, started))
        return confidence

    # ------------------------------------------------------------------
    # Node resolution
    # ------------------------------------------------------------------

    async def find(self, role: NodeRole) -> NodeResolutionResult:
        """Resolve *role* through the profile's fallback chain."""
        result = await self._resolver.resolve(self.profile.spec_for(role))
        self.metrics.record_resolution(role, result)
        if not result.found:
            logger.debug("%s: %s not found", self.profile_id, role.value)
        return result

    async def find_input_element(self) -> NodeResolutionResult:
        return await self.find(NodeRole.INPUT)

    async def find_submit_element(self) -> NodeResolutionResult:
        return await self.find(NodeRole.SUBMIT)

    async def find_chat_container(self) -> NodeResolutionResult:
        return await self.find(NodeRole.CONTAINER)

    async def find_injection_point(self) -> NodeResolutionResult:
        return await self.find(NodeRole.INJECTION_POINT)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Bring the adapter to INITIALIZED.

        Raises:
            InitializationError: Readiness was not reached in time, the
                site-specific setup failed, or the adapter was cleaned up.
        """
        if self._state is AdapterState.INITIALIZED:
            return
        if self._state is AdapterState.CLEANED_UP:
            raise InitializationError(
                f"{self.profile_id} adapter was cleaned up; construct a new one",
                context={"profile_id": self.profile_id, "state": self._state.value},
            )
        if self._init_task is None:
            self._state = AdapterState.INITIALIZING
            self._init_task = asyncio.ensure_future(self._run_initialization())
        await self._init_task

    async def _run_initialization(self) -> None:
        try:
            ready = await wait_for_ready(
                self._host,
                self._adapter_settings.ready_timeout_ms,
                clock=self._clock,
                poll_interval_ms=self._adapter_settings.poll_interval_ms,
            )
            if not ready:
                raise InitializationError(
                    f"{self.profile_id}: document not ready within {self._adapter_settings.ready_timeout_ms}ms",
                    context={"profile_id": self.profile_id, "ready_timeout_ms": self._adapter_settings.ready_timeout_ms},
                )
            await self._perform_initialization()
            if self._state is AdapterState.CLEANED_UP:
                raise InitializationError(
                    f"{self.profile_id}: adapter cleaned up during initialization",
                    context={"profile_id": self.profile_id},
                )
        except InitializationError:
            self._initialization_failed()
            raise
        except asyncio.CancelledError:
            self._initialization_failed()
            raise
        except Exception as exc:
            self._initialization_failed()
            raise InitializationError(
                f"Failed to initialize {self.profile_id} adapter: {exc}",
                context={"profile_id": self.profile_id, "error": repr(exc)},
            ) from exc
        else:
            self._state = AdapterState.INITIALIZED
            self.metrics.record_initialization(True)
            logger.info("%s adapter initialized", self.profile_id)
        finally:
            self._init_task = None

    def _initialization_failed(self) -> None:
        self.metrics.record_initialization(False)
        self._detach_subscription()
        if self._state is not AdapterState.CLEANED_UP:
            self._state = AdapterState.UNINITIALIZED

    async def cleanup(self) -> None:
        """Detach from the host and move to CLEANED_UP.

        Site-specific cleanup errors propagate after the adapter has still
        been detached.
        """
        if self._state is AdapterState.CLEANED_UP:
            return
        try:
            await self._perform_cleanup()
        finally:
            self._detach_subscription()
            self._listeners.clear()
            self._state = AdapterState.CLEANED_UP
            logger.info("%s adapter cleaned up", self.profile_id)

    # ------------------------------------------------------------------
    # Content changes
    # ------------------------------------------------------------------

    def add_change_listener(self, callback: ChangeCallback) -> Callable[[], None]:
        """Forward host content changes to *callback*; returns a remover."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def _dispatch_change(self, change: ContentChange) -> None:
        logger.debug("%s content updated: %s", self.profile_id, change)
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("%s change listener failed", self.profile_id)

    async def _attach_change_subscription(self) -> None:
        if not self._adapter_settings.observe_changes or self._subscription is not None:
            return
        self._subscription = await self._host.subscribe(self._dispatch_change)

    def _detach_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    async def _wait_for_marker(self, expressions: Sequence[str], timeout_ms: float | None = None) -> NodeHandle | None:
        """Wait for any of *expressions*; logs a warning and returns ``None`` on timeout."""
        budget = self._adapter_settings.marker_timeout_ms if timeout_ms is None else timeout_ms
        found = await wait_for_nodes(
            self._host,
            list(expressions),
            budget,
            clock=self._clock,
            poll_interval_ms=self._adapter_settings.poll_interval_ms,
        )
        if not found:
            logger.warning("%s: no marker node (%s) within %.0fms, continuing", self.profile_id, ", ".join(expressions), budget)
            return None
        return found[0]

    async def _wait_for_optional(self, expression: str, timeout_ms: float) -> NodeHandle | None:
        return await wait_for_node(
            self._host,
            expression,
            timeout_ms,
            clock=self._clock,
            poll_interval_ms=self._adapter_settings.poll_interval_ms,
        )

    async def _marker_boost(self, selectors: Sequence[str], title_tokens: Sequence[str], text_tokens: Sequence[str]) -> float:
        """Site-specific boost: 0.15 for structural hits plus 0.05 for branding.

        ``title_tokens`` count as one check against the document title.
        """
        checks = len(selectors) + (1 if title_tokens else 0)
        hits = 0
        for selector in selectors:
            try:
                if await self._host.query(selector) is not None:
                    hits += 1
            except InvalidExpressionError:
                continue
        if title_tokens:
            title = await self._host.query("title")
            text = (await title.text_content()).lower() if title is not None else ""
            if any(token.lower() in text for token in title_tokens):
                hits += 1
        boost = (hits / checks) * 0.15 if checks else 0.0
        body = (await self._host.body_text()).lower()
        if any(token.lower() in body for token in text_tokens):
            boost += 0.05
        return min(boost, self._detection_settings.max_additional_confidence)

    # ------------------------------------------------------------------
    # Subclass hooks
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def _additional_confidence(self) -> float:
        """Site-specific detection boost, clipped to ``[0, 0.2]`` by ``detect``."""

    @abc.abstractmethod
    async def _perform_initialization(self) -> None:
        """Site-specific setup run after the document is ready."""

    @abc.abstractmethod
    async def _perform_cleanup(self) -> None:
        """Site-specific teardown run before the adapter is detached."""
