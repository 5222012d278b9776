from __future__ import annotations

import threading

from pydantic import Field
from pydantic_settings import BaseSettings

_lock = threading.Lock()
_instance: TemplatesConfig | None = None


class TemplatesConfig(BaseSettings):
    model_config = {"env_prefix": "NOTIFY_TEMPLATES_"}

    proxy_url: str = "https://notify.civ.quest"
    request_timeout: float = Field(default=30.0, gt=0)
    sample_record_count: int = Field(default=10, ge=1)
    preview_row_limit: int = Field(default=10, ge=1)
    mock_record_count: int = Field(default=42, ge=0)
    graph_max_items: int = Field(default=8, ge=1)
    grouping_attribute_threshold: int = Field(default=5, ge=2)
    fallback_page_size: int = Field(default=2000, ge=1)
    max_fallback_records: int = Field(default=50000, ge=1)
    max_statistics: int = Field(default=10, ge=1)
    max_substitution_passes: int = Field(default=5, ge=1)


def get_config() -> TemplatesConfig:
    global _instance
    if _instance is None:
        with _lock:
            if _instance is None:
                _instance = TemplatesConfig()
    return _instance


def reset_config() -> None:
    global _instance
    with _lock:
        _instance = None
