"""
Task queue: prioritized and deferred task execution.

A TaskQueue provides two ways of scheduling work on an asyncio event loop.

The first is a priority queue that indexes tasks by a priority chosen by
the caller and drains them cooperatively:

    queue = TaskQueue(priorities=4, task_separation=5)

    queue.register_task(task1, 4)
    queue.register_task(task2, 3)
    queue.register_task(task3, 2)
    queue.register_task(task4, 1)

    cancel = queue.execute_all()
    # Execution order: task4, task3, task2, task1
    # 5ms elapse between two tasks

The second is the management of deferred tasks. Every deferred task is
tracked until it fires, so pending timers can be cancelled one by one or
all at once:

    cancel = queue.defer_task(task, 1000)  # run the task after 1000ms
    queue.clear_deferred_tasks()           # nothing pending will fire

Both register_task() and defer_task() return a cancel function.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Callable, Optional

from .bucket import Bucket
from .host import AsyncioHost
from .priority_queue import PriorityQueue
from .types import CancelFN, Queue, RunState, Task, TaskQueueConfig

logger = logging.getLogger(__name__)


@dataclass
class DeferredTask:
    """A task waiting on a host timer."""
    task: Task
    timer: Any = None
    on_cancel: Optional[Callable[[], None]] = None


class Execution:
    """
    One cancellable pass over a queue.

    Cancelling stops the pass at its next check and releases a pending
    separation wait right away. A task that was already dequeued always
    runs to completion.

    Attributes:
        until: Last handle of ``queue`` this pass may dequeue, None for all
        subscription_bound: Last completion callback handle owned by this
            pass, fixed once the pass stops accepting callbacks
        cancel_signal: Cancels the separation wait currently in progress
    """

    def __init__(self, queue: Queue, task_separation: float = 0, until: Optional[int] = None):
        self.queue = queue
        self.task_separation = task_separation
        self.until = until
        self.state = RunState.RUNNING
        self.future: Optional[asyncio.Future] = None
        self.subscription_bound: Optional[int] = None
        self.cancel_signal: Optional[CancelFN] = None

    @property
    def cancelled(self) -> bool:
        return self.state is RunState.CANCELLED

    @property
    def has_next(self) -> bool:
        if self.until is None:
            return not self.queue.is_empty
        entry = self.queue.peek()
        return entry is not None and entry[0] <= self.until

    def cancel(self) -> None:
        if self.state is RunState.RUNNING:
            self.state = RunState.CANCELLED
            if self.cancel_signal is not None:
                self.cancel_signal()

    def __repr__(self) -> str:
        return f"<Execution state={self.state.value} pending={self.queue.length}>"


class TaskQueue:
    """
    Scheduler for prioritized and deferred tasks.

    Args:
        config: Queue configuration, defaults to ``TaskQueue.default_config``
        host: Host capabilities, defaults to an AsyncioHost on the running loop
        **overrides: Individual config fields overriding ``config``
    """

    default_config = TaskQueueConfig()

    def __init__(
        self,
        config: Optional[TaskQueueConfig] = None,
        *,
        host: Optional[AsyncioHost] = None,
        **overrides: Any
    ):
        config = config or self.default_config
        if overrides:
            config = replace(config, **overrides)
        self.config = config
        self.auto_run = config.auto_run
        self.task_separation = config.task_separation
        self.main_thread_yield_time = config.main_thread_yield_time
        self.host = host or AsyncioHost()

        self.tasks: PriorityQueue[Task] = PriorityQueue(config.priorities)
        self.subscriptions: Bucket[Task] = Bucket()
        self.deferred_tasks: Bucket[DeferredTask] = Bucket()

        self._active: Optional[Execution] = None
        self._last: Optional[Execution] = None
        self._subscription_mark = 0

    def register_task(self, task: Task, priority: int = 1) -> CancelFN:
        """
        Register a task at a priority level (1 is the highest).

        Args:
            task: Callable to run, may return an awaitable
            priority: 1-based priority level

        Returns:
            A function removing the task from the queue

        Raises:
            OutOfRangeError: If the priority level does not exist
            RuntimeError: If auto-run is enabled and no event loop is running.
                The task is not registered in that case.
        """
        level = priority - 1
        handle = self.tasks.enqueue(task, level)
        try:
            self._after_register()
        except RuntimeError:
            self.tasks.delete(handle, level)
            raise

        def cancel() -> None:
            self.tasks.delete(handle, level)

        return cancel

    def defer_task(self, task: Task, delay: float) -> CancelFN:
        """
        Run a task once after ``delay`` milliseconds.

        Returns:
            A function cancelling the timer. Calling it after the task
            fired does nothing.
        """
        return self._defer(task, delay)

    def execute_all(self, on_complete: Optional[Task] = None, task_separation: Optional[float] = None) -> CancelFN:
        """
        Execute every registered task in priority order.

        Only one run executes at a time. While a run is active, further
        calls register their ``on_complete`` callback with it and return
        the active run's cancel function.

        Args:
            on_complete: Called once the run finishes or is cancelled
            task_separation: Milliseconds between two tasks, defaults to
                the configured separation

        Returns:
            A function cancelling the run

        Raises:
            RuntimeError: If no event loop is running
        """
        if self._active is not None:
            self._subscribe(on_complete)
            return self.get_cancel_fn()
        if task_separation is None:
            task_separation = self.task_separation
        execution = self._cancellable_execution(self.tasks, task_separation)
        self._subscribe(on_complete)
        self._active = execution
        self._last = execution
        return partial(self._cancel_run, execution)

    def execute_tasks_with_priority(
        self,
        priority: int = 1,
        task_separation: float = 0,
        on_complete: Optional[Task] = None
    ) -> CancelFN:
        """
        Execute the tasks registered at a single priority level.

        Calls made while ``execute_all`` is running are muffled and return
        the active run's cancel function.

        Raises:
            OutOfRangeError: If the priority level does not exist
            RuntimeError: If no event loop is running
        """
        bucket = self.tasks.get_bucket(priority - 1)
        if self._active is not None:
            self._subscribe(on_complete)
            return self.get_cancel_fn()
        execution = self._cancellable_execution(bucket, task_separation)
        self._subscribe(on_complete)
        execution.subscription_bound = self._subscription_mark
        return execution.cancel

    def clear_pending_tasks(self) -> None:
        """Remove all prioritized tasks and cancel all deferred tasks."""
        self.tasks.clear()
        self.clear_deferred_tasks()

    def clear_deferred_tasks(self) -> None:
        """Cancel every task registered through ``defer_task``."""
        logger.debug(f"Clearing {self.deferred_tasks.length} deferred tasks")
        while self.deferred_tasks.length:
            deferred = self.deferred_tasks.dequeue()
            self.host.cancel(deferred.timer)
            if deferred.on_cancel is not None:
                deferred.on_cancel()

    def get_cancel_fn(self) -> Optional[CancelFN]:
        """Return the cancel function of the active run, or None when idle."""
        if self._active is None:
            return None
        return partial(self._cancel_run, self._active)

    @property
    def run_state(self) -> RunState:
        """State of the active or most recent ``execute_all`` run."""
        if self._last is None:
            return RunState.IDLE
        return self._last.state

    def _after_register(self) -> None:
        if self.auto_run and self._active is None:
            self.execute_all()

    def _subscribe(self, on_complete: Optional[Task]) -> None:
        if on_complete is not None:
            self._subscription_mark = self.subscriptions.enqueue(on_complete)

    def _release(self, execution: Execution) -> None:
        # Callbacks registered from here on belong to the next run
        if self._active is execution:
            execution.subscription_bound = self._subscription_mark
            self._active = None

    def _cancel_run(self, execution: Execution) -> None:
        logger.debug(f"Cancelling {execution!r}")
        execution.cancel()
        self._release(execution)

    def _defer(self, task: Task, delay: float, on_cancel: Optional[Callable[[], None]] = None) -> CancelFN:
        deferred = DeferredTask(task=task, on_cancel=on_cancel)

        def fire() -> None:
            # A missing entry means the task was cancelled in the same tick
            if self.deferred_tasks.delete(handle):
                self._invoke(task)

        deferred.timer = self.host.schedule_after(delay, fire)
        handle = self.deferred_tasks.enqueue(deferred)
        logger.debug(f"Deferred {task!r} by {delay}ms")

        def cancel() -> None:
            self.host.cancel(deferred.timer)
            if self.deferred_tasks.delete(handle):
                logger.debug(f"Cancelled deferred {task!r}")
                if on_cancel is not None:
                    on_cancel()

        return cancel

    def _cancellable_execution(self, queue: Queue, task_separation: float = 0) -> Execution:
        execution = Execution(queue, task_separation)
        execution.future = self.host.start(self._run, execution)
        return execution

    async def _run(self, execution: Execution) -> None:
        logger.debug(f"Starting {execution!r}")
        await self._drain(execution)

        if execution.state is RunState.RUNNING:
            execution.state = RunState.DRAINING
        self._release(execution)
        logger.debug(f"Finished {execution!r}")

        bound = execution.subscription_bound
        if bound is None:
            bound = self._subscription_mark
        if not self.subscriptions.is_empty:
            await self._drain(Execution(self.subscriptions, until=bound))

        if execution.state is RunState.DRAINING:
            execution.state = RunState.IDLE

    async def _drain(self, execution: Execution) -> None:
        while execution.has_next:
            proceed = await self._next_signal(execution)
            if execution.cancelled or not proceed:
                break
            if self.host.is_contended():
                await self.host.sleep(self.main_thread_yield_time)
                continue
            if not execution.has_next:
                break
            self._invoke(execution.queue.dequeue())

    async def _next_signal(self, execution: Execution) -> bool:
        """
        Wait for permission to dequeue the next task.

        With a separation the wait is a deferred task, so clearing deferred
        tasks or cancelling the execution ends it early. The signal then
        resolves to False.
        """
        if not execution.task_separation:
            await asyncio.sleep(0)
            return True

        signal = asyncio.get_running_loop().create_future()

        def resolve(value: bool) -> None:
            if not signal.done():
                signal.set_result(value)

        execution.cancel_signal = self._defer(
            partial(resolve, True),
            execution.task_separation,
            on_cancel=partial(resolve, False)
        )
        try:
            return await signal
        finally:
            execution.cancel_signal = None

    def _invoke(self, task: Task) -> None:
        try:
            result = task()
        except Exception as e:
            logger.error(f"Task {task!r} failed: {e}", exc_info=True)
            return
        if inspect.isawaitable(result):
            self.host.spawn(result)
