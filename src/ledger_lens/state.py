"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .settings import LensSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed to the service layer to avoid global state and enable testing.
    """

    settings: LensSettings
    logger: logging.Logger
