"""Type aliases used across QMS Guard."""

from __future__ import annotations

from datetime import datetime
from typing import Callable

Clock = Callable[[], datetime]
