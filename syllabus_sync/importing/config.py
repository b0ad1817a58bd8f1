from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass
class ProgressConfig:
    """
    Tuning knobs for the simulated progress bar. None of these values affect
    correctness; tests set the delays to zero.
    """

    step_range: Tuple[int, int] = (8, 15)
    step_delay_range: Tuple[float, float] = (0.10, 0.30)
    initial_progress: float = 0.02
    initial_message: str = "Preparing document..."
    settle_delay: float = 0.12
    hold_interval: float = 0.3
    finish_steps: int = 5
    finish_delay: float = 0.05
    step_messages: Tuple[str, ...] = ("Processing...", "Analyzing...", "Working...")

    @classmethod
    def instant(cls) -> "ProgressConfig":
        return cls(
            step_range=(2, 3),
            step_delay_range=(0.0, 0.0),
            settle_delay=0.0,
            hold_interval=0.01,
            finish_steps=2,
            finish_delay=0.0,
        )


@dataclass
class ParserClientConfig:
    base_url: str
    default_headers: Dict[str, str] = field(default_factory=dict)
    request_timeout: float = 30.0
    max_retry_count: int = 1
    server_retry_backoff: float = 0.8
    transport_retry_backoff: float = 0.5

    def __post_init__(self) -> None:
        self.max_retry_count = max(0, self.max_retry_count)


@dataclass
class ImportConfig:
    database_url: str = "sqlite+pysqlite:///./data/syllabus_sync.db"
    storage_root: str = "./data"
    parser_base_url: str = "http://localhost:3000"
    parser_timeout: float = 30.0
    parser_max_retries: int = 1
    parser_api_key: Optional[str] = None
    timezone: str = "UTC"
    preview_max_dimension: int = 600
    perform_ocr: bool = False
    progress: ProgressConfig = field(default_factory=ProgressConfig)

    @classmethod
    def from_env(cls) -> "ImportConfig":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            storage_root=os.getenv("IMPORT_STORAGE_ROOT", cls.storage_root),
            parser_base_url=os.getenv("PARSER_BASE_URL", cls.parser_base_url),
            parser_timeout=float(os.getenv("PARSER_TIMEOUT_SECONDS", str(cls.parser_timeout))),
            parser_max_retries=int(os.getenv("PARSER_MAX_RETRIES", str(cls.parser_max_retries))),
            parser_api_key=os.getenv("PARSER_API_KEY") or None,
            timezone=os.getenv("SYLLABUS_TIMEZONE", cls.timezone),
            preview_max_dimension=int(os.getenv("PREVIEW_MAX_DIMENSION", str(cls.preview_max_dimension))),
            perform_ocr=os.getenv("PERFORM_OCR", "false").lower() in ("1", "true", "yes"),
        )

    def parser_client_config(self) -> ParserClientConfig:
        headers: Dict[str, str] = {}
        if self.parser_api_key:
            headers["Authorization"] = f"Bearer {self.parser_api_key}"
        return ParserClientConfig(
            base_url=self.parser_base_url,
            default_headers=headers,
            request_timeout=self.parser_timeout,
            max_retry_count=self.parser_max_retries,
        )
