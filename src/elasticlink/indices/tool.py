"""索引存在性缓存与建索引协调."""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from elasticsearch import Elasticsearch

from ..utils import response_body, with_timeout
from .exceptions import IndexCheckError, IndexCreateError

logger = logging.getLogger(__name__)


class IndexCache:
    """索引存在性缓存.

    缓存中存在某个索引名表示它曾经被确认存在；不存在表示"未知"，
    而不是"索引不存在"。缓存可能过期，需要最新状态时使用 force_check。

    同一个客户端上的 create_index 调用由一把互斥锁串行化，避免并发重复建索引。

    Args:
        es_client: Elasticsearch 客户端实例
    """

    def __init__(self, es_client: Elasticsearch):
        self.es_client = es_client
        self._cache: dict[str, bool] = {}
        self._cache_lock = threading.Lock()
        self._create_lock = threading.Lock()

    def add_index_cache(self, *index_names: str) -> None:
        """将索引标记为已存在."""
        with self._cache_lock:
            for name in index_names:
                self._cache[name] = True

    def delete_index_cache(self, *index_names: str) -> None:
        """移除索引缓存，之后该索引的状态为"未知"."""
        with self._cache_lock:
            for name in index_names:
                self._cache.pop(name, None)

    def cached(self, index_name: str) -> bool:
        """索引是否在缓存中."""
        with self._cache_lock:
            return index_name in self._cache

    def clear(self) -> None:
        with self._cache_lock:
            self._cache.clear()

    def index_exists(
        self,
        index_name: str,
        force_check: bool = False,
        timeout: float | None = None,
    ) -> bool:
        """检查索引是否存在.

        未强制检查且索引不在缓存中时，直接乐观地返回 True，不发起请求；
        这意味着从未缓存过的不存在的索引也会被报告为存在，除非 force_check。
        索引在缓存中或 force_check 为 True 时发起实时检查，确认存在则写入缓存。

        Args:
            index_name: 索引名称
            force_check: 是否强制实时检查
            timeout: 请求超时时间（秒）

        Returns:
            索引是否存在

        Raises:
            IndexCheckError: 实时检查失败时抛出
        """
        if not force_check and not self.cached(index_name):
            return True

        try:
            exists = bool(
                response_body(
                    with_timeout(self.es_client, timeout).indices.exists(index=index_name)
                )
            )
        except Exception as e:
            raise IndexCheckError(f"检查索引 '{index_name}' 是否存在失败: {e}") from e

        if exists:
            self.add_index_cache(index_name)
        return exists

    def create_index(
        self,
        index_name: str,
        body: dict[str, Any] | str | None = None,
        force_check: bool = False,
        timeout: float | None = None,
    ) -> bool:
        """索引不存在时创建索引.

        整个"检查-创建"过程持有客户端级别的建索引锁。存在性检查失败时只记录
        警告并视为无需创建；创建失败时仍将索引标记为已存在（可能有并发的
        创建者），然后抛出原始错误。

        Args:
            index_name: 索引名称
            body: 建索引请求体（settings、mappings、aliases），支持 dict 或 JSON 字符串
            force_check: 是否强制实时检查索引是否存在
            timeout: 请求超时时间（秒）

        Returns:
            本次调用是否创建了索引

        Raises:
            IndexCreateError: body 不是合法 JSON 或创建请求失败时抛出，
                索引名称是否合法由 ES 校验
        """
        if isinstance(body, str):
            try:
                body = json.loads(body) if body.strip() else None
            except json.JSONDecodeError as e:
                raise IndexCreateError(f"索引 '{index_name}' 的请求体不是合法 JSON: {e}") from e

        with self._create_lock:
            try:
                if self.index_exists(index_name, force_check, timeout):
                    return False
            except IndexCheckError as e:
                logger.warning(f"{e}，跳过创建索引 '{index_name}'")
                return False

            try:
                with_timeout(self.es_client, timeout).indices.create(
                    index=index_name, **(body or {})
                )
            except Exception as e:
                self.add_index_cache(index_name)
                raise IndexCreateError(f"创建索引 '{index_name}' 失败: {e}") from e

            self.add_index_cache(index_name)
            logger.info(f"索引 '{index_name}' 创建成功")
            return True
