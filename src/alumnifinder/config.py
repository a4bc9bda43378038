"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

SHEET_ID = "12aodSbtnxiDmiSwcCrVEP0NFBbWYDJtQpa7ILXQ5fZg"

# The gviz endpoint serves public sheets as CSV without the export redirect.
DEFAULT_CSV_URL = f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/gviz/tq?tqx=out:csv"

DEFAULT_RELAY_URL = (
    "https://script.google.com/macros/s/"
    "AKfycbwskvlFfMB2wSzBdL5f2NmsR4SCPUpY_gVqnaJZkONVb3BSbSdr1C-jrk6o6mg4BgQlJw/exec"
)

DAILY_LIMIT = 10
STORAGE_KEY = "adalc_daily_email_stats"


def _get_default_state_path() -> Path:
    """Get the default state database path."""
    # When running from source, prefer local data/ if it exists
    local_db = Path("data/alumnifinder.db")
    if local_db.exists():
        return local_db

    return Path.home() / "Documents" / "AlumniFinder" / "alumnifinder.db"


@dataclass(slots=True)
class AppConfig:
    state_path: Path | None = None
    csv_url: str = DEFAULT_CSV_URL
    relay_url: str = DEFAULT_RELAY_URL
    daily_limit: int = DAILY_LIMIT
    window_hours: int = 24
    timeout: float = 15.0

    def __post_init__(self) -> None:
        if self.state_path is None:
            self.state_path = _get_default_state_path()

    @property
    def window_ms(self) -> int:
        return self.window_hours * 60 * 60 * 1000

    def resolve_state_path(self, base_dir: Path | None = None) -> Path:
        if self.state_path is None:
            self.state_path = _get_default_state_path()
        if Path(self.state_path).is_absolute() or base_dir is None:
            return Path(self.state_path)
        return base_dir / self.state_path
