"""
Detection of invented values ("placeholders") in model-generated steps.

A model that does not know a real path or URL tends to write ``path/to/repo``
or ``<username>``. Steps containing such tokens get their certainty lowered
so the executor asks the user before running anything.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import List, Optional

from .models import PlaceholderMatch, Step

# Ordered; every pattern is reported at most once (first match).
PLACEHOLDER_PATTERNS: List[re.Pattern] = [
    re.compile(r"path/to/", re.IGNORECASE),
    re.compile(r"example\.com", re.IGNORECASE),
    re.compile(r"\byour_", re.IGNORECASE),
    re.compile(r"<[a-z_][a-z0-9_\-]*>", re.IGNORECASE),       # <repository_name>
    re.compile(r"\[[a-z_][a-z0-9_\-]*\]", re.IGNORECASE),     # [repository_name]
    re.compile(r"placeholder", re.IGNORECASE),
    re.compile(r"\bsample\b", re.IGNORECASE),
    re.compile(r"\b(?:foo|bar|baz)\b", re.IGNORECASE),
    re.compile(r"\b(?:username|password)\b", re.IGNORECASE),
    re.compile(r"/path/", re.IGNORECASE),
    re.compile(r"/directory/", re.IGNORECASE),
    re.compile(r"/folder/", re.IGNORECASE),
    re.compile(r"/repo/", re.IGNORECASE),
    re.compile(r"/repository/", re.IGNORECASE),
]


@dataclass
class PlaceholderScan:
    detected: bool = False
    patterns: List[PlaceholderMatch] = field(default_factory=list)


def detect(text: Optional[str]) -> PlaceholderScan:
    if not text:
        return PlaceholderScan()
    found = []
    for pat in PLACEHOLDER_PATTERNS:
        m = pat.search(text)
        if m:
            found.append(PlaceholderMatch(pattern=pat.pattern, match=m.group(0)))
    return PlaceholderScan(detected=bool(found), patterns=found)


def flag_placeholders(step: Step, threshold: float) -> Step:
    """
    Return a copy of ``step`` with placeholder matches recorded and certainty
    clamped to ``threshold - 0.1`` when anything matched.

    Clarified steps carry user-supplied values and are returned unchanged.
    """
    if step.clarified:
        return step

    cmd_scan = detect(step.command)
    desc_scan = detect(step.description)
    if not (cmd_scan.detected or desc_scan.detected):
        return step

    ceiling = max(0.0, round(threshold - 0.1, 4))
    return step.model_copy(update={
        "certainty": min(step.certainty, ceiling),
        "placeholders": cmd_scan.patterns,
        "description_placeholders": desc_scan.patterns,
    })
