"""Device templates and per-slave overrides.

A template holds the default scale tree of one device model. Each slave
persists only its *override*: the leaves that differ from the template.
:func:`merge` materialises ``override ⊕ template`` when the registry
loads, and :func:`diff` recovers the minimal override when an edited
slave is written back, so later template changes still reach slaves that
never customised a value.

Example:
    >>> template = {"meter": {"aActivePower": {"divider": 1000.0}}}
    >>> override = {"meter": {"aActivePower": {"divider": 2000.0}}}
    >>> merge(override, template)["meter"]["aActivePower"]["divider"]
    2000.0
    >>> diff(merge(override, template), template) == override
    True
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from pyrtubridge.codec import Formula
from pyrtubridge.config.store import ConfigStore
from pyrtubridge.constants import MAX_MERGE_DEPTH, TEMPLATES_PATH
from pyrtubridge.exceptions import (
    ConfigInvalidError,
    ConfigMissingError,
    MergeTooDeepError,
    TemplateNotFoundError,
)
from pyrtubridge.models import DEVICE_CHANNELS, MODEL_DEVICE_TYPES, SCALES_BY_TYPE

_LOGGER = logging.getLogger(__name__)

# Default dividers by formula for non-sensor devices
_FORMULA_DEFAULT_DIVIDERS: dict[Formula, float] = {
    Formula.SINGLE_PHASE_POWER: 1000.0,
    Formula.THREE_PHASE_POWER: 10000.0,
}


# =============================================================================
# MERGE / DIFF
# =============================================================================


def _check_depth(depth: int) -> None:
    if depth > MAX_MERGE_DEPTH:
        raise MergeTooDeepError(f"Template nesting exceeds {MAX_MERGE_DEPTH} levels")


def _merge(override: Mapping[str, Any], template: Mapping[str, Any], depth: int) -> dict[str, Any]:
    _check_depth(depth)
    result = {key: copy.deepcopy(value) for key, value in template.items()}
    for key, value in override.items():
        base = template.get(key)
        if isinstance(value, Mapping) and isinstance(base, Mapping):
            result[key] = _merge(value, base, depth + 1)
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge(override: Mapping[str, Any], template: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` onto ``template``.

    Objects present on both sides are merged recursively; any other value
    from ``override`` wins. Keys found on one side only are carried
    through. Arrays are replaced as a whole. Neither input is modified.

    Raises:
        MergeTooDeepError: If nesting exceeds the maximum depth
    """
    return _merge(override, template, 1)


def _diff(current: Mapping[str, Any], template: Mapping[str, Any], depth: int) -> dict[str, Any]:
    _check_depth(depth)
    result: dict[str, Any] = {}
    for key, value in current.items():
        if isinstance(value, Mapping):
            base = template.get(key)
            nested = _diff(value, base if isinstance(base, Mapping) else {}, depth + 1)
            if nested:
                result[key] = nested
        elif key not in template or template[key] != value:
            result[key] = copy.deepcopy(value)
    return result


def diff(current: Mapping[str, Any], template: Mapping[str, Any]) -> dict[str, Any]:
    """Return the leaves of ``current`` that differ from ``template``.

    Leaves absent from the template are always emitted. Nested objects
    left empty after comparison are pruned.

    Raises:
        MergeTooDeepError: If nesting exceeds the maximum depth
    """
    return _diff(current, template, 1)


# =============================================================================
# DEFAULT TEMPLATES
# =============================================================================


def defaults_for(model: str) -> dict[str, Any]:
    """Return the built-in template for a device model.

    Raises:
        TemplateNotFoundError: If the model is not a known device model
    """
    device_type = MODEL_DEVICE_TYPES.get(model)
    if device_type is None:
        raise TemplateNotFoundError(model)

    scales = SCALES_BY_TYPE[device_type]
    if scales.flat:
        section: dict[str, Any] = {
            channel.template_key: 1.0 for channel in DEVICE_CHANNELS[device_type]
        }
    else:
        section = {
            channel.template_key: {
                "divider": _FORMULA_DEFAULT_DIVIDERS.get(channel.formula, 1.0)
            }
            for channel in DEVICE_CHANNELS[device_type]
        }
    return {scales.section: section}


def default_templates() -> dict[str, Any]:
    """Return the built-in templates for every known device model."""
    return {model: defaults_for(model) for model in MODEL_DEVICE_TYPES}


# =============================================================================
# TEMPLATE STORE
# =============================================================================


class TemplateStore:
    """Cached view of the stored templates document.

    The document is read from the :class:`ConfigStore` on first use and
    kept until :meth:`invalidate` is called.
    """

    merge = staticmethod(merge)
    diff = staticmethod(diff)
    defaults_for = staticmethod(defaults_for)

    def __init__(self, store: ConfigStore) -> None:
        self._store = store
        self._cache: dict[str, Any] | None = None
        self._fallback_logged: set[str] = set()

    def _document(self) -> dict[str, Any]:
        if self._cache is None:
            try:
                self._cache = self._store.load_templates()
            except ConfigMissingError:
                _LOGGER.info("No %s found, using built-in templates", TEMPLATES_PATH)
                self._cache = {}
        return self._cache

    def invalidate(self) -> None:
        """Drop the cached document; the next lookup reloads it."""
        self._cache = None
        self._fallback_logged.clear()

    def load_template(self, model: str) -> dict[str, Any]:
        """Return a copy of the stored template for ``model``.

        Raises:
            TemplateNotFoundError: If no template is stored for the model
            ConfigInvalidError: If the stored template is not an object
            StorageError: If the document cannot be read
        """
        template = self._document().get(model)
        if template is None:
            raise TemplateNotFoundError(model)
        if not isinstance(template, dict):
            raise ConfigInvalidError(f"Template for '{model}' must be an object")
        return copy.deepcopy(template)

    def template_for(self, model: str) -> dict[str, Any]:
        """Return the stored template, or the built-in one if none is stored."""
        try:
            return self.load_template(model)
        except TemplateNotFoundError:
            if model not in self._fallback_logged:
                self._fallback_logged.add(model)
                _LOGGER.info("No stored template for %s, using built-in defaults", model)
            return defaults_for(model)

    def materialise(self, model: str, override: Mapping[str, Any] | None) -> dict[str, Any]:
        """Return ``override ⊕ template`` for a device model."""
        return merge(override or {}, self.template_for(model))

    def all(self) -> dict[str, Any]:
        """Return a copy of the stored templates document."""
        return copy.deepcopy(self._document())

    def save(self, document: Mapping[str, Any]) -> None:
        """Validate and persist a full templates document.

        Raises:
            ConfigInvalidError: If the document is not an object of objects
            StorageError: If the document cannot be written
        """
        if not isinstance(document, Mapping):
            raise ConfigInvalidError("Templates document must be an object")
        for model, template in document.items():
            if not isinstance(template, Mapping):
                raise ConfigInvalidError(f"Template for '{model}' must be an object")
        self._store.save_templates(dict(document))
        self.invalidate()
        _LOGGER.info("Saved %d template(s)", len(document))

    def ensure_defaults(self) -> bool:
        """Write the built-in templates if no templates document exists.

        Returns:
            True if the defaults were written
        """
        if self._store.exists(TEMPLATES_PATH):
            return False
        self._store.save_templates(default_templates())
        self.invalidate()
        _LOGGER.info("Created default templates in %s", TEMPLATES_PATH)
        return True
