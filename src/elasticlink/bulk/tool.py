"""批量管道核心工具类."""

from __future__ import annotations

import dataclasses
import itertools
import json
import logging
import queue
import threading
import time
from typing import Any

from elasticsearch import Elasticsearch

from ..utils import response_body
from .exceptions import BulkProcessorClosedError
from .models import (
    MAX_BULK_ACTIONS,
    MAX_BULK_SIZE,
    MAX_FLUSH_INTERVAL,
    BulkConfig,
    BulkProcessorStats,
    BulkRequest,
)

logger = logging.getLogger(__name__)

# 空闲时检查取消信号的间隔（秒）
_IDLE_POLL_INTERVAL = 0.2

_STOP = object()


def default_after_callback(
    execution_id: int,
    requests: list[BulkRequest],
    response: dict[str, Any] | None,
    error: Exception | None,
) -> None:
    """默认批次完成回调：仅在批次失败或存在失败项时记录日志."""
    if error is not None or (response is not None and response.get("errors")):
        res = json.dumps(response, default=str, ensure_ascii=False)
        logger.error(
            f"executionId: {execution_id}; requests: {requests}; "
            f"response: {res}; err: {error!r}"
        )


def normalize_bulk_config(config: BulkConfig | None, name: str = "") -> BulkConfig:
    """校验并修正批量管道配置.

    超出范围的参数会被修正到最近的合法值并记录警告，而不是抛出异常。
    返回新的配置对象，不修改传入的配置。

    Args:
        config: 原始配置，None 时使用默认配置
        name: 配置未指定名称时使用的名称

    Returns:
        修正后的配置
    """
    config = dataclasses.replace(config) if config is not None else BulkConfig()

    if not config.name:
        config.name = name

    if config.workers < 1:
        logger.warning(f"Bulk workers must be >= 1, got {config.workers}; using 1")
        config.workers = 1

    if config.bulk_size > MAX_BULK_SIZE:
        logger.warning("Bulk size must be smaller than 100MB; it will be clamped.")
        config.bulk_size = MAX_BULK_SIZE

    if config.bulk_actions >= MAX_BULK_ACTIONS:
        logger.warning("Bulk actions must be smaller than 10000; it will be clamped.")
        config.bulk_actions = MAX_BULK_ACTIONS

    if config.flush_interval >= MAX_FLUSH_INTERVAL:
        logger.warning("Bulk flush interval must be smaller than 60s; it will be clamped.")
        config.flush_interval = MAX_FLUSH_INTERVAL

    if config.after is None:
        config.after = default_after_callback

    if config.cancel_event is None:
        config.cancel_event = threading.Event()

    return config


class _FlushRequest:
    """手动刷新请求，工作线程提交缓冲区后置位 done."""

    def __init__(self) -> None:
        self.done = threading.Event()


class _Worker:
    """单个工作线程的队列与缓冲区."""

    def __init__(self, index: int) -> None:
        self.index = index
        self.queue: queue.Queue = queue.Queue()
        self.buffer: list[BulkRequest] = []
        self.buffer_size = 0
        self.first_added_at = 0.0
        self.thread: threading.Thread | None = None

    def add(self, request: BulkRequest, size: int) -> None:
        if not self.buffer:
            self.first_added_at = time.monotonic()
        self.buffer.append(request)
        self.buffer_size += size

    def take(self) -> list[BulkRequest]:
        requests = self.buffer
        self.buffer = []
        self.buffer_size = 0
        return requests


class BulkProcessor:
    """后台批量写入处理器.

    调用方通过 add() 提交操作后立即返回，后台工作线程按数量、字节数或
    时间间隔（先到先触发）将操作合并为批次提交到 ES，每个提交的批次
    无论成功失败都恰好调用一次完成回调。

    多个工作线程之间不保证执行顺序。

    Args:
        es_client: Elasticsearch 客户端实例
        config: 批量管道配置，会先经过 normalize_bulk_config 修正
        name: 配置未指定名称时使用的名称

    Examples:
        >>> processor = BulkProcessor(es_client, BulkConfig(workers=2)).start()
        >>> processor.add(BulkRequest(BulkAction.INDEX, "users", "1", doc={"name": "Alice"}))
        >>> processor.close()
    """

    def __init__(
        self,
        es_client: Elasticsearch,
        config: BulkConfig | None = None,
        name: str = "",
    ) -> None:
        self.es_client = es_client
        self.config = normalize_bulk_config(config, name)
        self._workers = [_Worker(i) for i in range(self.config.workers)]
        self._dispatch = itertools.cycle(self._workers)
        self._execution_ids = itertools.count(1)
        self._lock = threading.Lock()
        self._stats = BulkProcessorStats()
        self._started = False
        self._closed = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_running(self) -> bool:
        return self._started and not self._closed and not self._cancelled

    @property
    def _cancelled(self) -> bool:
        return self.config.cancel_event.is_set()

    def start(self) -> BulkProcessor:
        """启动后台工作线程，支持链式调用."""
        with self._lock:
            if self._started:
                return self
            if self._closed:
                raise BulkProcessorClosedError(f"批量处理器 '{self.name}' 已关闭")
            for worker in self._workers:
                worker.thread = threading.Thread(
                    target=self._run,
                    args=(worker,),
                    name=f"bulk-{self.name}-{worker.index}",
                    daemon=True,
                )
                worker.thread.start()
            self._started = True
        logger.info(
            f"批量处理器 '{self.name}' 已启动: workers={self.config.workers}, "
            f"bulk_actions={self.config.bulk_actions}, bulk_size={self.config.bulk_size}, "
            f"flush_interval={self.config.flush_interval}"
        )
        return self

    def add(self, request: BulkRequest) -> None:
        """提交一个操作到管道，立即返回.

        Raises:
            BulkProcessorClosedError: 处理器未启动、已关闭或已取消时抛出
        """
        # close() 在锁内置位关闭标记，已接收的操作一定排在停止标记之前
        with self._lock:
            if not self.is_running:
                raise BulkProcessorClosedError(f"批量处理器 '{self.name}' 未在运行")
            worker = next(self._dispatch)
            worker.queue.put(request)

    def flush(self) -> None:
        """要求所有工作线程立即提交当前缓冲区，并等待完成."""
        if not self.is_running:
            return
        pending = []
        for worker in self._workers:
            flush_request = _FlushRequest()
            worker.queue.put(flush_request)
            pending.append((worker, flush_request))
        for worker, flush_request in pending:
            while not flush_request.done.wait(_IDLE_POLL_INTERVAL):
                if worker.thread is None or not worker.thread.is_alive():
                    break

    def close(self) -> None:
        """排空队列、提交剩余批次并停止所有工作线程，可重复调用."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            started = self._started
        if not started:
            return
        for worker in self._workers:
            worker.queue.put(_STOP)
        for worker in self._workers:
            if worker.thread is not None:
                worker.thread.join()
        logger.info(f"批量处理器 '{self.name}' 已关闭")

    def stats(self) -> BulkProcessorStats:
        """返回统计信息快照."""
        with self._lock:
            return dataclasses.replace(self._stats)

    def __enter__(self) -> BulkProcessor:
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ============================================================
    # 工作线程
    # ============================================================

    def _poll_timeout(self, worker: _Worker) -> float:
        interval = self.config.flush_interval
        if not worker.buffer or interval <= 0:
            return _IDLE_POLL_INTERVAL
        remaining = worker.first_added_at + interval - time.monotonic()
        return max(0.0, min(remaining, _IDLE_POLL_INTERVAL))

    def _flush_due(self, worker: _Worker) -> bool:
        interval = self.config.flush_interval
        if not worker.buffer or interval <= 0:
            return False
        return time.monotonic() - worker.first_added_at >= interval

    def _run(self, worker: _Worker) -> None:
        while True:
            if self._cancelled:
                self._discard(worker)
                return

            try:
                item = worker.queue.get(timeout=self._poll_timeout(worker))
            except queue.Empty:
                if self._flush_due(worker):
                    with self._lock:
                        self._stats.flushed += 1
                    self._commit(worker)
                continue

            if item is _STOP:
                if self._cancelled:
                    self._discard(worker)
                else:
                    self._commit(worker)
                return

            if isinstance(item, _FlushRequest):
                with self._lock:
                    self._stats.flushed += 1
                self._commit(worker)
                item.done.set()
                continue

            size = item.estimated_size()
            # 加入后会超出字节上限时，先提交已有的缓冲区
            if worker.buffer and worker.buffer_size + size > self.config.bulk_size:
                self._commit(worker)
            worker.add(item, size)
            if (
                len(worker.buffer) >= self.config.bulk_actions
                or worker.buffer_size >= self.config.bulk_size
            ):
                self._commit(worker)

    def _discard(self, worker: _Worker) -> None:
        """取消后丢弃缓冲区和队列中尚未提交的操作."""
        dropped = len(worker.take())
        while True:
            try:
                item = worker.queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(item, _FlushRequest):
                item.done.set()
            elif isinstance(item, BulkRequest):
                dropped += 1
        if dropped:
            logger.warning(
                f"批量处理器 '{self.name}' 已取消，worker {worker.index} 丢弃 {dropped} 个未提交操作"
            )

    def _commit(self, worker: _Worker) -> None:
        if not worker.buffer:
            return
        requests = worker.take()
        with self._lock:
            execution_id = next(self._execution_ids)

        response: dict[str, Any] | None = None
        error: Exception | None = None
        try:
            body = [line for request in requests for line in request.to_lines()]
            response = response_body(self.es_client.bulk(operations=body))
        except Exception as e:
            logger.warning(f"批次 {execution_id} 提交失败: {e}")
            error = e

        self._record(requests, response, error)

        try:
            self.config.after(execution_id, requests, response, error)
        except Exception:
            logger.exception(f"批次 {execution_id} 的完成回调执行失败")

    def _record(
        self,
        requests: list[BulkRequest],
        response: dict[str, Any] | None,
        error: Exception | None,
    ) -> None:
        with self._lock:
            self._stats.committed += 1
            if error is not None or response is None:
                self._stats.failed += len(requests)
                return
            for item in response.get("items", []):
                for op_type, info in item.items():
                    if info.get("error"):
                        self._stats.failed += 1
                        continue
                    self._stats.succeeded += 1
                    if op_type == "index":
                        self._stats.indexed += 1
                    elif op_type == "create":
                        self._stats.created += 1
                    elif op_type == "update":
                        self._stats.updated += 1
                    elif op_type == "delete":
                        self._stats.deleted += 1
