# Path: vibetag/__init__.py
# Purpose: Package initializer for the concept tagging and hub detection core.
# Layer: vibetag.
# Details: Aggregates subpackages for embedders, catalog, tagging, hubs, storage, and vector stores.

__version__ = "0.1.0"
