"""Template persistence and the admin editing service.

A :class:`TemplateStore` only moves raw documents (camelCase dicts with
any unknown keys intact).  :class:`TemplateEditor` sits in front of a store:
it runs the injected authorization check before touching the store,
validates before every save, and applies element/statistic edits as
immutable updates.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from notify_templates.auth import AuthorizationCheck, Principal
from notify_templates.exceptions import TemplateError, TemplateNotFoundError, TemplateValidationError
from notify_templates.template.constants import DEFAULT_CUSTOM_TEMPLATE_HTML, THEME_COLOR_TOKENS, THEME_PRESETS
from notify_templates.template.loader import load_template_document, write_template_document
from notify_templates.template.models import BaseElement, Statistic, TemplateConfig
from notify_templates.template.validation import ValidationResult, validate_template

logger = logging.getLogger(__name__)


@runtime_checkable
class TemplateStore(Protocol):
    async def load(self, template_id: str) -> dict[str, Any]:
        """Return the stored document; raise :class:`TemplateNotFoundError` if absent."""
        ...

    async def save(self, template_id: str, document: dict[str, Any]) -> None: ...

    async def delete(self, template_id: str) -> None: ...


class InMemoryTemplateStore:
    """Dict-backed store, for tests and single-process use."""

    def __init__(self, documents: dict[str, dict[str, Any]] | None = None) -> None:
        self._documents: dict[str, dict[str, Any]] = copy.deepcopy(documents or {})
        self._lock = threading.Lock()

    async def load(self, template_id: str) -> dict[str, Any]:
        with self._lock:
            if template_id not in self._documents:
                raise TemplateNotFoundError(f"Template '{template_id}' not found")
            return copy.deepcopy(self._documents[template_id])

    async def save(self, template_id: str, document: dict[str, Any]) -> None:
        with self._lock:
            self._documents[template_id] = copy.deepcopy(document)

    async def delete(self, template_id: str) -> None:
        with self._lock:
            self._documents.pop(template_id, None)

    def ids(self) -> list[str]:
        with self._lock:
            return sorted(self._documents)


class FileTemplateStore:
    """One ``<template_id><suffix>`` file per template under *directory*."""

    def __init__(self, directory: str | Path, *, suffix: str = ".yaml") -> None:
        self._directory = Path(directory)
        self._suffix = suffix

    def path_for(self, template_id: str) -> Path:
        if not template_id or Path(template_id).name != template_id:
            raise TemplateError(f"Invalid template id: {template_id!r}")
        return self._directory / f"{template_id}{self._suffix}"

    async def load(self, template_id: str) -> dict[str, Any]:
        return load_template_document(self.path_for(template_id))

    async def save(self, template_id: str, document: dict[str, Any]) -> None:
        path = write_template_document(document, self.path_for(template_id))
        logger.info("Stored template '%s' at %s", template_id, path)

    async def delete(self, template_id: str) -> None:
        self.path_for(template_id).unlink(missing_ok=True)


# ── Editor ────────────────────────────────────────────────────────────────


class TemplateEditor:
    """Admin-only load/edit/save of templates held in a :class:`TemplateStore`."""

    def __init__(self, store: TemplateStore, authorize: AuthorizationCheck) -> None:
        self._store = store
        self._authorize = authorize

    async def load(self, principal: Principal | None, template_id: str) -> TemplateConfig:
        await self._authorize(principal)
        document = await self._store.load(template_id)
        try:
            return TemplateConfig.from_document(document)
        except ValidationError as exc:
            raise TemplateError(f"Stored template '{template_id}' is malformed: {exc}") from exc

    async def save(self, principal: Principal | None, template_id: str, template: TemplateConfig) -> ValidationResult:
        """Validate and store *template*.

        Raises :class:`TemplateValidationError` (nothing is written) when
        validation reports errors.  Warnings are returned to the caller.
        """
        await self._authorize(principal)
        result = validate_template(template)
        if not result.is_valid:
            raise TemplateValidationError(result)
        await self._store.save(template_id, template.to_document())
        logger.info("Saved template '%s' (%d warnings)", template_id, len(result.warnings))
        return result

    async def delete(self, principal: Principal | None, template_id: str) -> None:
        await self._authorize(principal)
        await self._store.delete(template_id)

    async def update(
        self,
        principal: Principal | None,
        template_id: str,
        edit: Callable[[TemplateConfig], TemplateConfig],
    ) -> TemplateConfig:
        """Load, apply *edit*, validate and save; returns the saved template."""
        template = await self.load(principal, template_id)
        updated = edit(template)
        await self.save(principal, template_id, updated)
        return updated


# ── Immutable edits ───────────────────────────────────────────────────────


def new_template() -> TemplateConfig:
    """A fresh template: the default HTML body and the default theme."""
    return TemplateConfig(html=DEFAULT_CUSTOM_TEMPLATE_HTML, theme=THEME_PRESETS["Default Blue"])


def apply_theme_preset(template: TemplateConfig, preset: str) -> TemplateConfig:
    """Replace the theme colors with a named preset, keeping font and size settings."""
    if preset not in THEME_PRESETS:
        raise TemplateError(f"Unknown theme preset '{preset}'")
    colors = THEME_PRESETS[preset].model_dump(include={to_snake(token) for token in THEME_COLOR_TOKENS})
    return template.model_copy(update={"theme": template.theme.model_copy(update=colors)})


def new_element_id(element_type: str) -> str:
    return f"{element_type}_{uuid.uuid4().hex[:8]}"


def add_element(template: TemplateConfig, element: BaseElement, index: int | None = None) -> TemplateConfig:
    elements = list(template.visual_elements)
    if not element.id:
        element = element.model_copy(update={"id": new_element_id(getattr(element, "type", "element"))})
    elements.insert(len(elements) if index is None else index, element)
    return template.model_copy(update={"visual_elements": elements})


def update_element(template: TemplateConfig, element_id: str, **changes: Any) -> TemplateConfig:
    found = False
    elements = []
    for el in template.visual_elements:
        if el.id == element_id:
            el = el.model_copy(update=changes)
            found = True
        elements.append(el)
    if not found:
        raise TemplateError(f"No element with id '{element_id}'")
    return template.model_copy(update={"visual_elements": elements})


def remove_element(template: TemplateConfig, element_id: str) -> TemplateConfig:
    elements = [el for el in template.visual_elements if el.id != element_id]
    return template.model_copy(update={"visual_elements": elements})


def move_element(template: TemplateConfig, element_id: str, index: int) -> TemplateConfig:
    elements = list(template.visual_elements)
    position = next((i for i, el in enumerate(elements) if el.id == element_id), None)
    if position is None:
        raise TemplateError(f"No element with id '{element_id}'")
    element = elements.pop(position)
    elements.insert(max(0, min(index, len(elements))), element)
    return template.model_copy(update={"visual_elements": elements})


def upsert_statistic(template: TemplateConfig, statistic: Statistic) -> TemplateConfig:
    """Replace the statistic with the same id, or append it."""
    statistics = list(template.statistics)
    for i, existing in enumerate(statistics):
        if existing.id == statistic.id:
            statistics[i] = statistic
            break
    else:
        statistics.append(statistic)
    return template.model_copy(update={"statistics": statistics})


def remove_statistic(template: TemplateConfig, stat_id: str) -> TemplateConfig:
    """Drop the statistic and every element selection that references it."""
    statistics = [s for s in template.statistics if s.id != stat_id]
    elements = []
    for el in template.visual_elements:
        selected = getattr(el, "selected_statistics", None)
        if selected and stat_id in selected:
            el = el.model_copy(update={"selected_statistics": [i for i in selected if i != stat_id]})
        elements.append(el)
    return template.model_copy(update={"statistics": statistics, "visual_elements": elements})
