"""Utility modules for repolens."""

from repolens.utils.logging import (
    LogMode,
    configure_from_cli,
    get_logger,
    setup_logging,
)
from repolens.utils.tasks import Outcome, gather_settled

__all__ = [
    "LogMode",
    "Outcome",
    "configure_from_cli",
    "gather_settled",
    "get_logger",
    "setup_logging",
]
