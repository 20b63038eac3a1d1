from __future__ import annotations
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from queue import Empty, Queue
from typing import Dict, Iterable, List, Optional

from ..config import MAX_DNS_LOOKUPS_PER_TICK
from ..errors import CollectionCancelled
from .model import Engine, Frame, Task

log = logging.getLogger(__name__)

class Orchestrator:
    """
    Runs an Engine: one consumer thread drains the message queue in FIFO order,
    tasks run on worker threads, and the resulting messages are queued back.

    Each task with a timeout gets a timer; when it fires first the task's
    failure message is queued and a task still waiting for a thread is
    dropped. Running work is not interrupted, so a late success is still
    queued and applied. Delayed tasks (the next tick) fire straight from
    their timer and never wait behind pool work.
    """

    def __init__(self, engine: Engine, max_workers: int = 16,
                 dns_workers: int = MAX_DNS_LOOKUPS_PER_TICK):
        self.engine = engine
        self.queue: "Queue[object]" = Queue()
        self._pools: Dict[str, ThreadPoolExecutor] = {
            "work": ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="netmon-task"),
            "dns": ThreadPoolExecutor(max_workers=dns_workers, thread_name_prefix="netmon-dns"),
        }
        self._timers: List[threading.Timer] = []
        self._timers_lock = threading.Lock()
        # future -> whether its deadline already fired
        self._pending: Dict[Future, bool] = {}
        self._pending_lock = threading.Lock()
        self._stopped = threading.Event()
        self._frame_lock = threading.Lock()
        self._frame: Frame = engine.frame()
        self._thread: Optional[threading.Thread] = None

    # ---- public, any thread ----
    def post(self, msg) -> None:
        if not self._stopped.is_set():
            self.queue.put(msg)

    def frame(self) -> Frame:
        with self._frame_lock:
            return self._frame

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> None:
        self.dispatch(self.engine.init())
        self._thread = threading.Thread(target=self.run, name="netmon-engine", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        with self._timers_lock:
            for t in self._timers:
                t.cancel()
            self._timers.clear()
        for pool in self._pools.values():
            pool.shutdown(wait=False, cancel_futures=True)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    # ---- consumer thread ----
    def run(self) -> None:
        while not self._stopped.is_set():
            try:
                msg = self.queue.get(timeout=0.25)
            except Empty:
                continue
            self.process(msg)

    def process(self, msg) -> None:
        try:
            tasks = self.engine.update(msg)
        except Exception:
            log.exception("engine failed to handle %r", msg)
            tasks = []
        self._publish()
        self.dispatch(tasks)
        if self.engine.quitting:
            self.stop()

    def _publish(self) -> None:
        frame = self.engine.frame()
        with self._frame_lock:
            self._frame = frame

    # ---- task execution ----
    def dispatch(self, tasks: Iterable[Task]) -> None:
        for task in tasks:
            if task.delay > 0:
                self._start_timer(task.delay, self._fire, task)
            else:
                self._submit(task)

    def _start_timer(self, delay: float, fn, *args) -> Optional[threading.Timer]:
        if self._stopped.is_set():
            return None
        timer = threading.Timer(delay, fn, args=args)
        timer.daemon = True
        with self._timers_lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()
        return timer

    def _fire(self, task: Task) -> None:
        if self._stopped.is_set():
            return
        try:
            msg = task.run()
        except Exception as exc:
            log.debug("task %s failed: %s", task.name, exc)
            msg = task.failed(exc)
        if msg is not None:
            self.post(msg)

    def _submit(self, task: Task) -> None:
        if self._stopped.is_set():
            return
        pool = self._pools.get(task.pool, self._pools["work"])
        try:
            fut: Future = pool.submit(task.run)
        except RuntimeError:
            log.debug("executor shut down; dropping task %s", task.name)
            return
        with self._pending_lock:
            self._pending[fut] = False
        timer = None
        if task.timeout:
            timer = self._start_timer(task.timeout, self._expire, task, fut)
        fut.add_done_callback(lambda f: self._finished(task, f, timer))

    def _expire(self, task: Task, fut: Future) -> None:
        with self._pending_lock:
            if fut not in self._pending:
                return
            self._pending[fut] = True
        log.debug("task %s exceeded %.1fs", task.name, task.timeout or 0)
        fut.cancel()
        msg = task.failed(CollectionCancelled(f"{task.name}: deadline exceeded"))
        if msg is not None:
            self.post(msg)

    def _finished(self, task: Task, fut: Future, timer: Optional[threading.Timer]) -> None:
        if timer is not None:
            timer.cancel()
        with self._pending_lock:
            expired = self._pending.pop(fut, False)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is None:
            msg = fut.result()
        elif expired:
            return
        else:
            log.debug("task %s failed: %s", task.name, exc)
            msg = task.failed(exc)
        if msg is not None:
            self.post(msg)
