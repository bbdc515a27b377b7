"""Domain entity representing a directory user."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """Recipient of notifications as seen from the user directory."""

    id: int | None
    name: str
    email: str
    is_active: bool = True
    created_at: datetime | None = None
