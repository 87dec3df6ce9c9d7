# app/services/worker_pool.py
import logging
import queue
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Hashable, List, Optional

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class WorkerFailure:
    """처리에 실패했거나 큐가 가득 차 버려진 항목"""
    item: Any
    error: Exception


class NotificationWorkerPool:
    """
    변경 이벤트를 처리하는 고정 크기 워커 풀.

    - 워커마다 전용 큐를 두고, key(item) 의 해시로 항목을 보낼 워커를 고릅니다.
      같은 key(예: 같은 문서 경로)의 항목은 항상 같은 워커가 넣은 순서대로 처리합니다.
    - 피드 콜백은 submit 으로 큐에 넣기만 하고, 실제 처리(분류 -> 발송)는 워커 스레드가 합니다.
    - 큐가 가득 차면 submit_timeout 동안 기다린 뒤 항목을 버리고 실패로 기록합니다.
    - 항목 하나의 실패는 로그와 실패 채널(failures, on_failure)로만 전달되고 다른 항목에 영향을 주지 않습니다.
    - 종료 시 큐에 남은 항목은 처리되지 않습니다.
    """

    def __init__(self, handler: Callable[[Any], None], workers: int = 4, max_queue_size: int = 1000,
                 submit_timeout: float = 5.0, on_failure: Optional[Callable[[WorkerFailure], None]] = None,
                 name: str = 'notification-worker', max_failures_kept: int = 100,
                 key: Optional[Callable[[Any], Hashable]] = None):
        if workers < 1:
            raise ValueError("workers 는 1 이상이어야 합니다.")
        self.handler = handler
        self.workers = workers
        self.submit_timeout = submit_timeout
        self.on_failure = on_failure
        self.name = name
        self.key = key or id
        # 큐 용량은 워커들에게 나누어 배정합니다.
        per_worker_size = max(1, max_queue_size // workers) if max_queue_size > 0 else 0
        self._queues: List["queue.Queue[Any]"] = [queue.Queue(maxsize=per_worker_size) for _ in range(workers)]
        self._threads: List[threading.Thread] = []
        self._failures: Deque[WorkerFailure] = deque(maxlen=max_failures_kept)
        self._failures_lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def failures(self) -> List[WorkerFailure]:
        with self._failures_lock:
            return list(self._failures)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for index, work_queue in enumerate(self._queues):
            thread = threading.Thread(target=self._work, args=(work_queue,), name=f"{self.name}-{index}")
            thread.daemon = True  # 메인 프로세스 종료 시 함께 종료
            thread.start()
            self._threads.append(thread)
        logger.info(f"워커 풀 시작: {self.name} (workers={self.workers})")

    def submit(self, item: Any) -> bool:
        """항목을 key 에 해당하는 워커 큐에 넣습니다. 큐가 가득 차서 버린 경우 False 를 반환합니다."""
        if not self._running:
            raise RuntimeError("워커 풀이 실행 중이 아닙니다. start() 를 먼저 호출해주세요.")
        work_queue = self._queues[hash(self.key(item)) % self.workers]
        try:
            work_queue.put(item, timeout=self.submit_timeout)
            return True
        except queue.Full as e:
            logger.error(f"워커 큐가 가득 차 항목을 버립니다: {item!r}")
            self._record_failure(item, e)
            return False

    def join(self) -> None:
        """큐에 들어간 모든 항목의 처리가 끝날 때까지 기다립니다."""
        for work_queue in self._queues:
            work_queue.join()

    def shutdown(self, wait: bool = True) -> None:
        if not self._running:
            return
        self._running = False
        # 남은 항목을 버리고 워커마다 종료 신호를 넣습니다.
        for work_queue in self._queues:
            while True:
                try:
                    work_queue.get_nowait()
                    work_queue.task_done()
                except queue.Empty:
                    break
            work_queue.put(_STOP)
        if wait:
            for thread in self._threads:
                thread.join()
        self._threads = []
        logger.info(f"워커 풀 종료: {self.name}")

    def _work(self, work_queue: "queue.Queue[Any]") -> None:
        while True:
            item = work_queue.get()
            try:
                if item is _STOP:
                    return
                self.handler(item)
            except Exception as e:
                logger.error(f"워커 항목 처리 실패: {item!r} - {e}", exc_info=True)
                self._record_failure(item, e)
            finally:
                work_queue.task_done()

    def _record_failure(self, item: Any, error: Exception) -> None:
        failure = WorkerFailure(item=item, error=error)
        with self._failures_lock:
            self._failures.append(failure)
        if self.on_failure is not None:
            try:
                self.on_failure(failure)
            except Exception as e:
                logger.error(f"on_failure 콜백 실패: {e}", exc_info=True)
