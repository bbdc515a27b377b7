"""Dispatch queue backends."""

from .base import DeadLetter, DispatchQueue, Lease
from .memory import InMemoryDispatchQueue
from .redis_queue import CONSUMER_GROUP, RedisDispatchQueue

__all__ = [
    "CONSUMER_GROUP",
    "DeadLetter",
    "DispatchQueue",
    "InMemoryDispatchQueue",
    "Lease",
    "RedisDispatchQueue",
]
