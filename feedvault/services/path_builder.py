"""Deterministic archive locations for entries."""

from datetime import datetime
from pathlib import Path

from ..utils import sanitize_for_path

_MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


class PathBuilder:
    """Maps entry metadata to ``{base}/{author} - {category}/{YYYY}/{MM} - {Month}/{hash}``.

    A pure function of its inputs: no filesystem access, no clock.
    """

    def __init__(self, base_directory: Path):
        self.base_directory = Path(base_directory)

    def build_path(
        self, author: str, category: str, published_at: datetime, entry_hash: str
    ) -> Path:
        bucket = f"{sanitize_for_path(author)} - {sanitize_for_path(category)}"
        year = f"{published_at.year:04d}"
        # Month names are fixed English, independent of the process locale.
        month = f"{published_at.month:02d} - {_MONTH_NAMES[published_at.month - 1]}"
        return self.base_directory / bucket / year / month / entry_hash
