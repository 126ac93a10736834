"""Environment detection."""

from siteadapters.detection.detector import EnvironmentDetector, dom_score, is_well_formed_url, score_profile

__all__ = ["EnvironmentDetector", "dom_score", "is_well_formed_url", "score_profile"]
