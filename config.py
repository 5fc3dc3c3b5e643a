from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List


def _split_origins(raw: str) -> List[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path("data")
    static_dir: Path = Path("public")
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    poll_interval_ms: int = 5000
    host: str = "127.0.0.1"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=Path(os.getenv("BOOKING_DATA_DIR", "data")),
            static_dir=Path(os.getenv("BOOKING_STATIC_DIR", "public")),
            cors_origins=_split_origins(os.getenv("BOOKING_CORS_ORIGINS", "*")),
            log_level=os.getenv("BOOKING_LOG_LEVEL", "INFO").upper(),
            poll_interval_ms=int(os.getenv("BOOKING_POLL_INTERVAL_MS", "5000")),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "3000")),
        )
