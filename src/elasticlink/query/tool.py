"""查询执行与滚动遍历核心工具类."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import Any

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import ApiError, TransportError

from ..constants import DEFAULT_PREFERENCE, DEFAULT_SCROLL_KEEPALIVE
from ..typing import QueryType
from ..utils import join_routing, query_to_dict, response_body, with_timeout
from .exceptions import QueryExecutionError, ScrollCancelledError
from .models import QueryOptions, ScrollPage

logger = logging.getLogger(__name__)

# 滚动遍历每页回调：(response, error)，返回 False 时停止遍历
ScrollCallback = Callable[[Any, Exception | None], Any]


def build_search_body(
    query: QueryType,
    options: QueryOptions,
    from_: int | None = None,
    size: int | None = None,
) -> dict[str, Any]:
    """根据查询条件和选项构造 search 请求体.

    Args:
        query: 查询条件，None 表示 match_all
        options: 查询选项
        from_: 分页起始位置，None 表示不设置
        size: 每页数量，None 表示不设置

    Returns:
        ES search DSL 字典
    """
    body: dict[str, Any] = {"query": query_to_dict(query)}

    if options.fetch_source is False:
        body["_source"] = False
    elif options.include_fields or options.exclude_fields:
        source: dict[str, list[str]] = {}
        if options.include_fields:
            source["includes"] = list(options.include_fields)
        if options.exclude_fields:
            source["excludes"] = list(options.exclude_fields)
        body["_source"] = source
    else:
        body["_source"] = True

    if from_ is not None:
        body["from"] = from_
    if size is not None:
        body["size"] = size

    sort = [
        {field_name: {"order": "asc" if ascending else "desc"}}
        for order in options.orders
        for field_name, ascending in order.items()
    ]
    if sort:
        body["sort"] = sort

    if options.highlight:
        body["highlight"] = options.highlight

    body["profile"] = options.profile
    return body


def _search_kwargs(body: dict[str, Any]) -> dict[str, Any]:
    """将请求体转换为 Elasticsearch.search 的关键字参数."""
    renamed = {"_source": "source", "from": "from_"}
    return {renamed.get(key, key): value for key, value in body.items()}


class ScrollCursor:
    """滚动遍历游标.

    惰性迭代器，每次迭代向服务端请求下一页并返回 ScrollPage。以下情况结束遍历：
    没有新的 scroll_id、返回空页、响应缺少 hits。获取某页失败时，
    该错误作为一个 ScrollPage 返回一次，之后遍历结束，由调用方决定如何处理。

    无论遍历如何结束，close() 都会且只会释放一次服务端游标。
    建议通过 with 语句使用，确保提前退出时也能释放。

    Examples:
        >>> with tool.scroll(["logs"], Q("match", level="error"), 500, []) as pages:
        ...     for page in pages:
        ...         if not page.ok:
        ...             break
        ...         handle(page.hits)
    """

    def __init__(
        self,
        es_client: Elasticsearch,
        indices: list[str],
        body: dict[str, Any],
        size: int,
        routing: str | None,
        preference: str,
        keepalive: str,
        slow_query_ms: int,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        self.es_client = es_client
        self.indices = indices
        self.body = body
        self.size = size
        self.routing = routing
        self.preference = preference
        self.keepalive = keepalive
        self.slow_query_ms = slow_query_ms
        self.cancel_event = cancel_event
        self.timeout = timeout
        self.scroll_id: str | None = None
        self._started = False
        self._exhausted = False
        self._released = False

    def __iter__(self) -> ScrollCursor:
        return self

    def __next__(self) -> ScrollPage:
        if self._exhausted:
            self.close()
            raise StopIteration

        if self.cancel_event is not None and self.cancel_event.is_set():
            self.close()
            raise ScrollCancelledError(f"滚动遍历 {self.indices} 已取消")

        try:
            response = response_body(self._fetch())
        except (ApiError, TransportError) as e:
            logger.warning(f"滚动遍历 {self.indices} 获取下一页失败: {e}")
            self._exhausted = True
            return ScrollPage(error=e)

        if response is None:
            logger.warning("nil results !")
            self.close()
            raise StopIteration

        page = ScrollPage(response=response)
        self._log_slow(page.took)

        scroll_id = response.get("_scroll_id")
        if scroll_id:
            self.scroll_id = scroll_id
        else:
            self._exhausted = True

        if response.get("hits") is None or response["hits"].get("hits") is None:
            logger.warning("expected results.hits != None; got None")
            self.close()
            raise StopIteration

        if not page.hits:
            self.close()
            raise StopIteration

        return page

    def _fetch(self) -> Any:
        es_client = with_timeout(self.es_client, self.timeout)
        if not self._started:
            self._started = True
            kwargs = _search_kwargs(self.body)
            kwargs["size"] = self.size
            if self.routing:
                kwargs["routing"] = self.routing
            return es_client.search(
                index=self.indices,
                scroll=self.keepalive,
                preference=self.preference,
                ignore_unavailable=True,
                **kwargs,
            )
        return es_client.scroll(scroll_id=self.scroll_id, scroll=self.keepalive)

    def _log_slow(self, took: int) -> None:
        if self.slow_query_ms > 0 and took >= self.slow_query_ms:
            logger.warning(
                f"slow query DSL: {json.dumps(self.body, ensure_ascii=False, default=str)}, "
                f"routing: {self.routing or ''}, took: {took}ms"
            )

    def close(self) -> None:
        """释放服务端游标，重复调用无副作用."""
        self._exhausted = True
        if self._released:
            return
        self._released = True
        if not self.scroll_id:
            return
        try:
            self.es_client.clear_scroll(scroll_id=[self.scroll_id])
        except Exception as e:
            logger.warning(f"释放滚动游标失败: {e}")

    def __enter__(self) -> ScrollCursor:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class QueryTool:
    """查询执行工具.

    Args:
        es_client: Elasticsearch 客户端实例
        debug_mode: 调试模式，开启时打印所有查询 DSL
        query_log_enable: 客户端级别的查询日志开关
        global_slow_query_ms: 全局慢查询阈值（毫秒），单次查询未设置阈值时使用
    """

    def __init__(
        self,
        es_client: Elasticsearch,
        debug_mode: bool = False,
        query_log_enable: bool = False,
        global_slow_query_ms: int = 0,
    ):
        self.es_client = es_client
        self.debug_mode = debug_mode
        self.query_log_enable = query_log_enable
        self.global_slow_query_ms = global_slow_query_ms

    def _slow_threshold(self, options: QueryOptions) -> int:
        return options.slow_query_ms or self.global_slow_query_ms

    def _log_dsl(self, body: dict[str, Any], routing: str | None, options: QueryOptions) -> None:
        if self.debug_mode or self.query_log_enable or options.enable_dsl:
            logger.info(
                f"DSL: {json.dumps(body, ensure_ascii=False, default=str)}, "
                f"routing: {routing or ''}"
            )

    def query(
        self,
        index_name: str | list[str],
        routes: list[str] | None,
        query: QueryType,
        from_: int = 0,
        size: int = 10,
        options: QueryOptions | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """执行分页查询.

        默认优先访问本地分片（preference="_local"），并忽略不可用的索引/分片，
        避免部分分片故障导致整个查询失败。

        Args:
            index_name: 索引名称或索引列表
            routes: 路由键列表，为空表示不设置
            query: 查询条件，elasticsearch.dsl 的 Query、DSL 字典或 None（match_all）
            from_: 分页起始位置
            size: 每页数量
            options: 查询选项
            timeout: 请求超时时间（秒）

        Returns:
            ES 原始响应

        Raises:
            QueryExecutionError: 查询失败时抛出
        """
        options = options or QueryOptions()
        body = build_search_body(query, options, from_=from_, size=size)
        routing = join_routing(routes)

        kwargs = _search_kwargs(body)
        if routing:
            kwargs["routing"] = routing

        self._log_dsl(body, routing, options)
        try:
            response = response_body(
                with_timeout(self.es_client, timeout).search(
                    index=index_name,
                    ignore_unavailable=True,
                    preference=options.preference or DEFAULT_PREFERENCE,
                    **kwargs,
                )
            )
        except (ApiError, TransportError) as e:
            raise QueryExecutionError(f"查询索引 '{index_name}' 失败: {e}") from e

        threshold = self._slow_threshold(options)
        took = response.get("took", 0) if response else 0
        if threshold > 0 and took >= threshold:
            logger.warning(
                f"slow query DSL: {json.dumps(body, ensure_ascii=False, default=str)}, "
                f"routing: {routing or ''}, took: {took}ms"
            )
        return response

    def scroll(
        self,
        indices: list[str],
        query: QueryType,
        size: int,
        routes: list[str] | None,
        options: QueryOptions | None = None,
        keepalive: str = DEFAULT_SCROLL_KEEPALIVE,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> ScrollCursor:
        """创建滚动遍历游标，不会立即发起请求.

        Args:
            indices: 索引列表
            query: 查询条件
            size: 每页数量
            routes: 路由键列表
            options: 查询选项（include/exclude 字段不生效，只控制是否返回 _source）
            keepalive: 服务端游标保活时间
            cancel_event: 取消信号，每次获取下一页前检查
            timeout: 单次请求超时时间（秒）

        Returns:
            ScrollCursor 游标
        """
        options = options or QueryOptions()
        scroll_options = QueryOptions(
            orders=options.orders,
            highlight=options.highlight,
            profile=options.profile,
            fetch_source=options.fetch_source,
        )
        body = build_search_body(query, scroll_options)
        routing = join_routing(routes)
        self._log_dsl(body, routing, options)
        return ScrollCursor(
            es_client=self.es_client,
            indices=list(indices),
            body=body,
            size=size,
            routing=routing,
            preference=options.preference or DEFAULT_PREFERENCE,
            keepalive=keepalive,
            slow_query_ms=self._slow_threshold(options),
            cancel_event=cancel_event,
            timeout=timeout,
        )

    def scroll_query(
        self,
        indices: list[str],
        query: QueryType,
        size: int,
        routes: list[str] | None,
        callback: ScrollCallback,
        options: QueryOptions | None = None,
        keepalive: str = DEFAULT_SCROLL_KEEPALIVE,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> int:
        """阻塞式滚动遍历，对每个非空页同步调用 callback(response, error).

        回调返回 False 时提前停止。无论如何结束，返回前都会释放服务端游标。

        Returns:
            调用回调的次数

        Raises:
            ScrollCancelledError: cancel_event 被置位时抛出
        """
        delivered = 0
        with self.scroll(
            indices,
            query,
            size,
            routes,
            options=options,
            keepalive=keepalive,
            cancel_event=cancel_event,
            timeout=timeout,
        ) as cursor:
            for page in cursor:
                delivered += 1
                if callback(page.response, page.error) is False:
                    break
        return delivered
