"""History-derived rankings: hotspots and bus factor.

A hotspot is a file whose complexity is above a threshold. Hotspots are
ranked by how many recent commits touched them, so complex code that keeps
changing comes first. Change counts only see commits whose changed files
were fetched (see GitHubConfig.commit_details).
"""

import logging
import math
from collections import Counter
from collections.abc import Mapping, Sequence

from repolens.models.findings import Severity
from repolens.models.history import Commit, Contributor, Hotspot
from repolens.models.report import FileQuality

logger = logging.getLogger(__name__)

HOTSPOT_LIMIT = 20
PRIMARY_CONTRIBUTORS = 3


def risk_level(complexity: int) -> Severity:
    """MEDIUM up to 40, HIGH up to 60, CRITICAL above."""
    if complexity > 60:
        return Severity.CRITICAL
    if complexity > 40:
        return Severity.HIGH
    return Severity.MEDIUM


def change_counts(commits: Sequence[Commit]) -> Counter[str]:
    """Number of commits touching each path."""
    counts: Counter[str] = Counter()
    for commit in commits:
        counts.update(set(commit.files))
    return counts


def find_hotspots(
    quality: Mapping[str, FileQuality],
    commits: Sequence[Commit] = (),
    threshold: int = 20,
    limit: int = HOTSPOT_LIMIT,
) -> list[Hotspot]:
    """Rank files above ``threshold`` complexity by change frequency.

    Args:
        quality: Per-file metrics keyed by path
        commits: Recent history (commits without file lists count as no change)
        threshold: Minimum complexity (exclusive)
        limit: Maximum number of hotspots

    Returns:
        Hotspots ordered by changes, then complexity, then path
    """
    changes = change_counts(commits)
    authors: dict[str, Counter[str]] = {}
    for commit in commits:
        for path in set(commit.files):
            authors.setdefault(path, Counter())[commit.author] += 1

    hotspots = [
        Hotspot(
            file=path.rsplit("/", 1)[-1],
            path=path,
            complexity=q.complexity,
            changes=changes[path],
            risk_level=risk_level(q.complexity),
            lines_of_code=q.lines_of_code,
            primary_contributors=tuple(
                name for name, _ in authors.get(path, Counter()).most_common(PRIMARY_CONTRIBUTORS)
            ),
        )
        for path, q in quality.items()
        if q.complexity > threshold
    ]
    hotspots.sort(key=lambda h: (-h.changes, -h.complexity, h.path))
    logger.info("Found %d hotspots above complexity %d", len(hotspots), threshold)
    return hotspots[:limit]


def bus_factor(contributors: Sequence[Contributor]) -> int:
    """Estimated bus factor: a fifth of the contributors, rounded up."""
    count = len(contributors)
    return min(count, math.ceil(count * 0.2))
