# Path: config/__init__.py
# Purpose: Package initializer for configuration module.
# Layer: config.
# Details: Exposes settings models for application-wide configuration.

from .settings import AppSettings, EmbedderSettings, HubDetectionSettings, SchedulerSettings, TaggingSettings

__all__ = ["AppSettings", "EmbedderSettings", "HubDetectionSettings", "SchedulerSettings", "TaggingSettings"]
