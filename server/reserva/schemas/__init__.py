"""Pydantic schemas for request/response validation."""

from .availability import *  # noqa: F403
from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .health import *  # noqa: F403
from .hold import *  # noqa: F403
from .schedule import *  # noqa: F403
