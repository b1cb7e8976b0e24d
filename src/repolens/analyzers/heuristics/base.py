"""Abstract base class for heuristic analyzers.

Every heuristic analyzer:
1. Reads the file catalog (never mutates it)
2. Scans content line by line or file by file
3. Returns a flat list of typed findings

Analyzers are independent of each other. A failure in one is wrapped in a
HeuristicError by run() so the coordinator can record it as a warning.
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from repolens.errors import HeuristicError
from repolens.models.catalog import FileRecord, is_code_file

logger = logging.getLogger(__name__)

F = TypeVar("F")


@dataclass(frozen=True)
class LineMatch:
    """One regex hit inside a file.

    Attributes:
        record: File the line belongs to
        line: 1-based line number
        text: The full line
        match: The regex match object
    """

    record: FileRecord
    line: int
    text: str
    match: re.Match[str]


def iter_lines(record: FileRecord) -> Iterator[tuple[int, str]]:
    """Yield (1-based line number, line) pairs for a file with content."""
    for number, line in enumerate((record.content or "").splitlines(), start=1):
        yield number, line


def scan_lines(
    files: Sequence[FileRecord],
    pattern: re.Pattern[str],
    include: Callable[[FileRecord], bool] | None = None,
) -> Iterator[LineMatch]:
    """Yield every line matching ``pattern`` across the selected files.

    Args:
        files: File catalog
        pattern: Compiled regex searched on each line
        include: Optional file filter (defaults to code files)

    Yields:
        LineMatch for the first hit on each matching line
    """
    selected = include or (lambda r: is_code_file(r.path))
    for record in files:
        if record.content is None or not selected(record):
            continue
        for number, line in iter_lines(record):
            match = pattern.search(line)
            if match:
                yield LineMatch(record=record, line=number, text=line, match=match)


class HeuristicAnalyzer(ABC, Generic[F]):
    """Abstract interface for heuristic scanners.

    Attributes:
        step: Step name used for progress labels and warnings
        description: Human-readable description
    """

    step: str = ""
    description: str = ""

    @abstractmethod
    def analyze(self, files: Sequence[FileRecord]) -> list[F]:
        """Scan a catalog and return findings.

        Args:
            files: File catalog

        Returns:
            Findings in a deterministic order
        """
        pass

    def run(self, files: Sequence[FileRecord]) -> list[F]:
        """Run analyze() and wrap any failure in a HeuristicError.

        Raises:
            HeuristicError: If the analyzer raised
        """
        try:
            findings = self.analyze(files)
        except Exception as e:
            raise HeuristicError(self.step, e) from e
        logger.debug("%s produced %d findings", self.step, len(findings))
        return findings
