"""
Paths and logging setup for the digit recogniser.

Only locations are configurable here; the geometry of the normalisation
pipeline lives in :mod:`digit_recognizer.constants`.
"""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger


BASE_DIR = Path(__file__).resolve().parents[2]

MODELS_DIR = BASE_DIR / "models"

LOGS_DIR = Path(os.environ.get("DIGIT_RECOGNIZER_LOGS_DIR", str(BASE_DIR / "logs")))

PARAMETERS_PATH: str = os.environ.get(
    "DIGIT_RECOGNIZER_PARAMETERS_PATH",
    str(MODELS_DIR / "neural-network-parameters.json"),
)


_LOGGING_CONFIGURED = False


def setup_logging() -> None:
    """Configure a rotating file logger for the recogniser (idempotent)."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    log_path = LOGS_DIR / "digit_recognizer.log"

    logger.add(
        str(log_path),
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )

    _LOGGING_CONFIGURED = True
    logger.info(f"Digit recogniser logging to {log_path}")
    logger.info(f"Digit recogniser parameter path: {PARAMETERS_PATH}")
