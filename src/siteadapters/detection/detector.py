"""Environment detector: which known profile is the current document?

Scoring per profile:

* URL match against any of the profile's patterns contributes ``url_weight``
  (0.7 by default).
* Once the URL matched, the structural heuristic contributes up to
  ``dom_weight`` (0.3): the fraction of marker checks that succeed. Each
  marker selector is one check, "any text token appears in the body text"
  is one check, and each attribute marker is one check.

The total is capped at 1.0. The best-scoring profile wins, with ties going
to the profile declared first; a best score of 0.5 or less means no match.

Results above the threshold are cached per URL for ``cache_ttl_ms``;
expired entries are purged lazily when the same URL is looked up again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable
from urllib.parse import urlsplit

from siteadapters.clock import Clock, SystemClock, elapsed_ms
from siteadapters.models import DetectionDetails, DetectionResult

if TYPE_CHECKING:
    from siteadapters.document.base import DocumentHost
    from siteadapters.models import DetectionMarkers, EnvironmentProfile
    from siteadapters.settings.config import DetectionSettings

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_MS = 30_000
DEFAULT_THRESHOLD = 0.5
URL_WEIGHT = 0.7
DOM_WEIGHT = 0.3


# ---------------------------------------------------------------------------
# Scoring helpers (shared with adapters)
# ---------------------------------------------------------------------------


def is_well_formed_url(url: str) -> bool:
    """True for absolute URLs with both a scheme and a host."""
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


async def dom_score(host: DocumentHost, markers: DetectionMarkers) -> float:
    """Fraction of *markers* checks that succeed on *host*, in ``[0, 1]``.

    A check that raises is skipped as a failed check.
    """
    total = markers.check_count
    if total == 0:
        return 0.0
    passed = 0

    for selector in markers.selectors:
        try:
            if await host.query(selector) is not None:
                passed += 1
        except Exception as exc:
            logger.debug("Marker selector %r skipped: %s", selector, exc)

    if markers.text_tokens:
        try:
            body = (await host.body_text()).lower()
            if any(token.lower() in body for token in markers.text_tokens):
                passed += 1
        except Exception as exc:
            logger.debug("Text marker check skipped: %s", exc)

    for marker in markers.attributes:
        try:
            node = await host.query(marker.selector)
            value = await node.get_attribute(marker.attribute) if node is not None else None
            if value and marker.test(value):
                passed += 1
        except Exception as exc:
            logger.debug("Attribute marker %r skipped: %s", marker.selector, exc)

    return passed / total


@dataclass
class ProfileScore:
    profile_id: str
    confidence: float
    url_matched: bool
    dom_score: float


async def score_profile(
    profile: EnvironmentProfile,
    url: str,
    host: DocumentHost,
    *,
    url_weight: float = URL_WEIGHT,
    dom_weight: float = DOM_WEIGHT,
) -> ProfileScore:
    """Score one profile against *url* and the structure of *host*."""
    url_matched = profile.matches_url(url)
    if not url_matched:
        return ProfileScore(profile.profile_id, 0.0, False, 0.0)
    structure = await dom_score(host, profile.markers)
    confidence = url_weight + structure * dom_weight
    return ProfileScore(profile.profile_id, min(confidence, 1.0), url_matched, structure)


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------


@dataclass
class _CacheEntry:
    stored_at: float
    result: DetectionResult


class EnvironmentDetector:
    """Classify the document on *host* against an ordered list of profiles.

    Args:
        profiles: Candidate profiles; declaration order breaks ties.
        host: Document whose URL and structure are inspected.
        settings: Weights, threshold and cache TTL.
        clock: Time source for cache expiry and timing.
    """

    def __init__(
        self,
        profiles: Iterable[EnvironmentProfile],
        host: DocumentHost,
        *,
        settings: DetectionSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._profiles = list(profiles)
        self._host = host
        self._clock = clock or SystemClock()
        self._cache: dict[str, _CacheEntry] = {}
        if settings is not None:
            self._ttl_ms = settings.cache_ttl_ms
            self._threshold = settings.match_threshold
            self._url_weight = settings.url_weight
            self._dom_weight = settings.dom_weight
        else:
            self._ttl_ms = DEFAULT_CACHE_TTL_MS
            self._threshold = DEFAULT_THRESHOLD
            self._url_weight = URL_WEIGHT
            self._dom_weight = DOM_WEIGHT

    @property
    def profiles(self) -> list[EnvironmentProfile]:
        return list(self._profiles)

    @property
    def threshold(self) -> float:
        return self._threshold

    async def detect(self, url: str | None = None) -> DetectionResult:
        """Detect the active profile for *url* (defaults to the host's URL).

        Never raises: malformed URLs score 0, and a host failure yields a
        zero result with ``details.error`` set.
        """
        started = self._clock.monotonic()
        try:
            target = url if url is not None else await self._host.current_url()
        except Exception as exc:
            logger.warning("Detection failed reading host URL: %s", exc)
            return DetectionResult(
                url=url or "",
                details=DetectionDetails(error=str(exc), detection_time_ms=elapsed_ms(self._clock, started)),
            )

        cached = self._lookup(target)
        if cached is not None:
            logger.debug("Detection cache hit for %s", target)
            return cached.model_copy(update={"from_cache": True})

        if not is_well_formed_url(target):
            logger.debug("Malformed URL %r, no detection", target)
            return DetectionResult(
                url=target,
                details=DetectionDetails(detection_time_ms=elapsed_ms(self._clock, started)),
            )

        try:
            result = await self._perform(target, started)
        except Exception as exc:
            logger.warning("Detection failed for %s: %s", target, exc)
            return DetectionResult(
                url=target,
                details=DetectionDetails(error=str(exc), detection_time_ms=elapsed_ms(self._clock, started)),
            )

        if result.confidence > self._threshold:
            self._cache[target] = _CacheEntry(self._clock.monotonic(), result)
        return result

    async def _perform(self, url: str, started: float) -> DetectionResult:
        best: ProfileScore | None = None
        scores: dict[str, float] = {}
        for profile in self._profiles:
            score = await score_profile(
                profile, url, self._host, url_weight=self._url_weight, dom_weight=self._dom_weight
            )
            scores[profile.profile_id] = score.confidence
            if best is None or score.confidence > best.confidence:
                best = score

        confidence = best.confidence if best is not None else 0.0
        matched = best is not None and confidence > self._threshold
        result = DetectionResult(
            profile_id=best.profile_id if matched else None,
            confidence=confidence,
            url=url,
            details=DetectionDetails(
                url_matched=best.url_matched if best is not None else False,
                dom_score=best.dom_score if best is not None else 0.0,
                scores=scores,
                detection_time_ms=elapsed_ms(self._clock, started),
            ),
        )
        logger.info("Detected %s (confidence %.2f) for %s", result.profile_id, confidence, url)
        return result

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _lookup(self, url: str) -> DetectionResult | None:
        entry = self._cache.get(url)
        if entry is None:
            return None
        if (self._clock.monotonic() - entry.stored_at) * 1000.0 > self._ttl_ms:
            del self._cache[url]
            return None
        return entry.result

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ------------------------------------------------------------------
    # Profile queries
    # ------------------------------------------------------------------

    def is_supported(self, url: str) -> bool:
        """True if any profile's URL patterns match *url*."""
        return any(profile.matches_url(url) for profile in self._profiles)

    def supported_profiles(self) -> list[str]:
        return [profile.profile_id for profile in self._profiles]

    def url_patterns(self, profile_id: str) -> list[str]:
        for profile in self._profiles:
            if profile.profile_id == profile_id:
                return [pattern.pattern for pattern in profile.url_patterns]
        return []
