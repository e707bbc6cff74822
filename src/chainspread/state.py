"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import MonitorSettings


@dataclass
class AppState:
    """Settings and logger handed from the CLI to the commands it runs."""

    settings: MonitorSettings
    logger: logging.Logger
