"""
Data models for the task queue.

This module defines the core data structures shared by the queue:
- Configuration for a TaskQueue instance
- Run states of an execution
- The queue protocol implemented by buckets and priority queues
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Tuple, TypeVar, Union


T = TypeVar("T")

Task = Callable[[], Union[None, Awaitable[None]]]
CancelFN = Callable[[], None]


class OutOfRangeError(IndexError):
    """Raised when a priority level outside of the queue's range is addressed."""

    def __init__(self, message: str = "Out of Range Error: Attempted to access a bucket index that does not exist"):
        super().__init__(message)


class RunState(Enum):
    """State of a top-level execution run."""
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    CANCELLED = "cancelled"


class Queue(Protocol[T]):
    """What an execution run needs from the queue it drains."""

    @property
    def length(self) -> int: ...

    @property
    def is_empty(self) -> bool: ...

    def dequeue(self) -> Optional[T]: ...

    def peek(self) -> Optional[Tuple[int, T]]: ...


@dataclass
class TaskQueueConfig:
    """
    Configuration for a TaskQueue.

    Attributes:
        priorities: Number of priority levels (1 is the highest)
        auto_run: Start executing as soon as a task is registered
        task_separation: Delay in milliseconds between two dequeues
        main_thread_yield_time: Pause in milliseconds taken when the host is busy
    """
    priorities: int = 1
    auto_run: bool = False
    task_separation: float = 0
    main_thread_yield_time: float = 5

    def __post_init__(self):
        """Validate config fields."""
        if self.priorities < 1:
            raise ValueError(f"Priorities must be at least 1, got {self.priorities}")
        if self.task_separation < 0:
            raise ValueError(f"Task separation cannot be negative, got {self.task_separation}")
        if self.main_thread_yield_time < 0:
            raise ValueError(f"Yield time cannot be negative, got {self.main_thread_yield_time}")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "TaskQueueConfig":
        """
        Build a config from a plain mapping.

        Args:
            mapping: Keys matching the config attributes

        Returns:
            A validated config

        Raises:
            ValueError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(mapping) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**mapping)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}
