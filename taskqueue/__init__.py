"""
Task Queue Package

A lightweight task queue for prioritized and deferred tasks, executed
cooperatively on an asyncio event loop.
"""

__version__ = '1.0.7'

from .types import (
    Task,
    CancelFN,
    Queue,
    RunState,
    OutOfRangeError,
    TaskQueueConfig
)

from .bucket import Bucket
from .priority_queue import PriorityQueue
from .host import AsyncioHost
from .task_queue import TaskQueue, Execution, DeferredTask

from .server import create_app, run_server

__all__ = [
    'Task',
    'CancelFN',
    'Queue',
    'RunState',
    'OutOfRangeError',
    'TaskQueueConfig',
    'Bucket',
    'PriorityQueue',
    'AsyncioHost',
    'TaskQueue',
    'Execution',
    'DeferredTask',
    'create_app',
    'run_server',
]
