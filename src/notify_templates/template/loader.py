from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from notify_templates.datasource.models import FieldMetadata
from notify_templates.exceptions import TemplateError, TemplateNotFoundError
from notify_templates.template.models import TemplateConfig
from notify_templates.types import DataRecord

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = frozenset({".yaml", ".yml", ".json"})


def _read_document(path: Path) -> Any:
    if not path.exists():
        raise TemplateNotFoundError(f"Template file not found: {path}")
    if path.suffix not in SUPPORTED_SUFFIXES:
        raise TemplateError(f"Unsupported template format: {path.suffix}")
    raw = path.read_text(encoding="utf-8")
    try:
        if path.suffix in {".yaml", ".yml"}:
            return yaml.safe_load(raw)
        return json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise TemplateError(f"Could not parse {path}: {exc}") from exc


def load_template_document(path: str | Path) -> dict[str, Any]:
    """Read the raw persisted document (camelCase keys, extras intact)."""
    path = Path(path)
    data = _read_document(path) or {}
    if "customTemplate" in data and isinstance(data["customTemplate"], dict):
        data = data["customTemplate"]
    if not isinstance(data, dict):
        raise TemplateError(f"Template document in {path} must be a mapping")
    return data


def load_template_config(path: str | Path) -> TemplateConfig:
    data = load_template_document(path)
    try:
        template = TemplateConfig.from_document(data)
    except ValidationError as exc:
        raise TemplateError(f"Invalid template document {path}: {exc}") from exc
    logger.info("Loaded template from %s (%d elements)", path, len(template.visual_elements))
    return template


def dump_template_config(template: TemplateConfig, path: str | Path) -> Path:
    """Write *template* to *path* as YAML or JSON, chosen by suffix."""
    path = Path(path)
    if path.suffix not in SUPPORTED_SUFFIXES:
        raise TemplateError(f"Unsupported template format: {path.suffix}")
    write_template_document(template.to_document(), path)
    logger.info("Saved template to %s", path)
    return path


def write_template_document(document: dict[str, Any], path: str | Path) -> Path:
    path = Path(path)
    if path.suffix not in SUPPORTED_SUFFIXES:
        raise TemplateError(f"Unsupported template format: {path.suffix}")
    if path.suffix == ".json":
        text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
    else:
        text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def load_record_export(path: str | Path) -> tuple[list[DataRecord], list[FieldMetadata], int | None]:
    """Read records for an offline render.

    Accepts a plain list of records, a feature-service query response
    (``{"features": [{"attributes": ...}]}``) or
    ``{"records": [...], "fields": [...], "recordCount": N}``.
    """
    path = Path(path)
    data = _read_document(path)
    if isinstance(data, list):
        return [dict(r) for r in data], [], None
    if not isinstance(data, dict):
        raise TemplateError(f"Record export {path} must be a list or a mapping")

    if "features" in data:
        records = [dict(f.get("attributes") or {}) for f in data.get("features") or []]
    else:
        records = [dict(r) for r in data.get("records") or []]
    try:
        fields = [FieldMetadata.model_validate(f) for f in data.get("fields") or []]
    except ValidationError as exc:
        raise TemplateError(f"Invalid field metadata in {path}: {exc}") from exc
    count = data.get("recordCount", data.get("count"))
    return records, fields, int(count) if count is not None else None
