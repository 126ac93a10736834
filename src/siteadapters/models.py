"""Data model for environment profiles, detection and node resolution.

* ``EnvironmentProfile``: immutable description of one supported site:
  URL patterns, the four ``NodeRoleSpec``s, detection markers, display data.
* ``DetectionResult``: outcome of one ``detect`` call (cached by URL).
* ``NodeResolutionResult``: outcome of one ``resolve`` call (never cached).
* ``FallbackStrategy``: retry/backoff/budget knobs for the resolver.

Profiles and resolution results hold live matchers and node handles, so
they are dataclasses. Detection results and strategies are plain data and
use Pydantic.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from siteadapters.document.base import NodeHandle
    from siteadapters.dom.matchers import NodeMatcher
    from siteadapters.exceptions import AdapterError

_PROFILE_ID_RE = re.compile(r"^[a-z0-9_]+$")

SelectorUsed = Union[Literal["primary"], int, None]


class NodeRole(str, Enum):
    """The four interaction points every profile declares."""

    INPUT = "input"
    SUBMIT = "submit"
    CONTAINER = "container"
    INJECTION_POINT = "injection_point"


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeRoleSpec:
    """Ordered query expressions for one node role.

    ``primary`` is tried first, then ``fallbacks`` in declared order. A
    candidate must also satisfy ``validator`` when one is given.
    """

    primary: str
    fallbacks: tuple[str, ...] = ()
    validator: NodeMatcher | None = None
    description: str = ""

    @property
    def expressions(self) -> tuple[str, ...]:
        return (self.primary, *self.fallbacks)


@dataclass(frozen=True)
class AttributeMarker:
    """Marker check: attribute of the node at ``selector`` matches ``pattern``."""

    selector: str
    attribute: str
    pattern: str

    def test(self, value: str) -> bool:
        return re.search(self.pattern, value, re.IGNORECASE) is not None


@dataclass(frozen=True)
class DetectionMarkers:
    """Structural checks used by the detector's heuristic score.

    Each selector is one check, the text tokens together are one check
    ("any token appears in the body text"), and each attribute marker is
    one check.
    """

    selectors: tuple[str, ...] = ()
    text_tokens: tuple[str, ...] = ()
    attributes: tuple[AttributeMarker, ...] = ()

    @property
    def check_count(self) -> int:
        return len(self.selectors) + (1 if self.text_tokens else 0) + len(self.attributes)


@dataclass(frozen=True)
class ProfileFeatures:
    supports_streaming: bool = False
    has_code_execution: bool = False
    has_file_upload: bool = False
    uses_content_editable: bool = False


@dataclass(frozen=True)
class ProfileDisplay:
    display_name: str
    icon_url: str = ""
    features: ProfileFeatures = field(default_factory=ProfileFeatures)


@dataclass(frozen=True)
class EnvironmentProfile:
    """Immutable configuration describing one recognizable site.

    ``url_patterns`` may be given as strings; they are compiled
    case-insensitively on construction.
    """

    profile_id: str
    url_patterns: tuple[re.Pattern[str], ...]
    input: NodeRoleSpec
    submit: NodeRoleSpec
    container: NodeRoleSpec
    injection_point: NodeRoleSpec
    display: ProfileDisplay
    markers: DetectionMarkers = field(default_factory=DetectionMarkers)

    def __post_init__(self) -> None:
        if not _PROFILE_ID_RE.match(self.profile_id):
            raise ValueError(f"Invalid profile_id {self.profile_id!r}: use lower-case letters, digits and '_'")
        compiled = tuple(
            p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE) for p in self.url_patterns
        )
        object.__setattr__(self, "url_patterns", compiled)

    def matches_url(self, url: str) -> bool:
        return any(pattern.search(url) for pattern in self.url_patterns)

    def spec_for(self, role: NodeRole) -> NodeRoleSpec:
        return {
            NodeRole.INPUT: self.input,
            NodeRole.SUBMIT: self.submit,
            NodeRole.CONTAINER: self.container,
            NodeRole.INJECTION_POINT: self.injection_point,
        }[role]


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class DetectionDetails(BaseModel):
    """Diagnostics attached to a ``DetectionResult``."""

    model_config = ConfigDict(frozen=True)

    url_matched: bool = False
    dom_score: float = Field(default=0.0, ge=0.0, le=1.0)
    scores: dict[str, float] = Field(default_factory=dict)
    detection_time_ms: float = 0.0
    error: str = ""


class DetectionResult(BaseModel):
    """Outcome of one detection: which profile is active, and how sure we are."""

    model_config = ConfigDict(frozen=True)

    profile_id: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    url: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    from_cache: bool = False
    details: DetectionDetails = Field(default_factory=DetectionDetails)

    @property
    def matched(self) -> bool:
        return self.profile_id is not None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class FallbackStrategy(BaseModel):
    """Retry, backoff and budget settings for ``FallbackResolver``."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay_ms: float = Field(default=100, ge=0)
    max_delay_ms: float = Field(default=1_000, ge=0)
    exponential_backoff: bool = True
    max_timeout_ms: float = Field(default=5_000, gt=0)
    validate_elements: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay in ms after failed attempt number *attempt* (1-based)."""
        delay = self.base_delay_ms * (2 ** (attempt - 1)) if self.exponential_backoff else self.base_delay_ms
        return min(delay, self.max_delay_ms)


@dataclass
class NodeResolutionResult:
    """Outcome of resolving one ``NodeRoleSpec``.

    ``selector_used`` is ``"primary"`` or the 0-based index into
    ``spec.fallbacks``; ``None`` when nothing was accepted.
    """

    node: NodeHandle | None
    selector_used: SelectorUsed = None
    expression: str | None = None
    elapsed_ms: float = 0.0
    is_valid: bool = False
    attempts: int = 0
    error: AdapterError | None = None

    @property
    def found(self) -> bool:
        return self.node is not None
