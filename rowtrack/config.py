import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

DEFAULT_SOURCE_URLS: Tuple[str, ...] = (
    "https://yb.tl/Simple/wtrsvghjkl23",
    "https://yb.tl/Simple/arc2025",
)

# CSV snapshots land under the project root unless DATA_DIR says otherwise.
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_list(name: str, default: Tuple[str, ...]) -> List[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    database_url: Optional[str]
    pool_min: int = 1
    pool_max: int = 10
    source_urls: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_URLS))
    data_dir: Path = DEFAULT_DATA_DIR
    scrape_interval_minutes: int = 60
    http_timeout: int = 30
    port: int = 5000


def load_settings() -> Settings:
    """Read settings from the environment, tolerating malformed integers."""
    data_dir = os.environ.get("DATA_DIR")
    return Settings(
        database_url=os.environ.get("DATABASE_URL"),
        pool_min=_env_int("DB_POOL_MIN", 1),
        pool_max=_env_int("DB_POOL_MAX", 10),
        source_urls=_env_list("SCRAPE_URLS", DEFAULT_SOURCE_URLS),
        data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
        scrape_interval_minutes=max(1, _env_int("SCRAPE_INTERVAL_MINUTES", 60)),
        http_timeout=_env_int("HTTP_TIMEOUT", 30),
        port=_env_int("PORT", 5000),
    )
