# Path: vibetag/logging_setup.py
# Purpose: Configure process-wide logging for scripts and background jobs.
# Layer: vibetag.
# Details: Thin wrapper over logging.basicConfig so every entry point formats records the same way.

from __future__ import annotations

import logging


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure logging."""

    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
