"""Configuration storage: JSON documents, templates, parameters, settings."""

from pyrtubridge.config.params import PersistentParams
from pyrtubridge.config.settings import GatewayConfig
from pyrtubridge.config.store import ConfigStore
from pyrtubridge.config.templates import (
    TemplateStore,
    default_templates,
    defaults_for,
    diff,
    merge,
)

__all__ = [
    "ConfigStore",
    "GatewayConfig",
    "PersistentParams",
    "TemplateStore",
    "default_templates",
    "defaults_for",
    "diff",
    "merge",
]
