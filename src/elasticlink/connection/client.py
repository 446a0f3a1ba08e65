"""ES 客户端模块.

ESClient 对应一个逻辑连接配置，持有底层 Elasticsearch 实例、批量处理器、
索引存在性缓存以及文档操作和查询工具。
"""

from __future__ import annotations

import logging

from elasticsearch import Elasticsearch

from ..bulk.models import BulkConfig
from ..bulk.tool import BulkProcessor, normalize_bulk_config
from ..documents.tool import DocumentOperationTool
from ..indices.tool import IndexCache
from ..query.tool import QueryTool
from .models import ClientOptions

logger = logging.getLogger(__name__)


class ESClient:
    """逻辑 ES 客户端.

    由 ConnectionManager 创建，创建时即启动批量处理器；close() 会排空并关闭
    批量处理器，然后关闭底层连接。

    Attributes:
        name: 客户端名称
        urls: ES 节点地址列表
        username: Basic Auth 用户名
        es_client: 底层 Elasticsearch 实例
        bulk_config: 修正后的批量管道配置
        bulk_processor: 批量处理器，启动失败时为 None
        indices: 索引存在性缓存
        docs: 文档操作工具
        queries: 查询工具

    Examples:
        >>> client = manager.get_client("default")
        >>> client.indices.create_index("users", '{"mappings": {}}', force_check=True)
        >>> client.docs.bulk_create("users", "1", "", {"name": "Alice"})
        >>> res = client.queries.query("users", [], None, 0, 10)
    """

    def __init__(
        self,
        name: str,
        urls: list[str],
        username: str,
        password: str,
        es_client: Elasticsearch,
        options: ClientOptions | None = None,
    ) -> None:
        options = options or ClientOptions()
        self.name = name
        self.urls = list(urls)
        self.username = username
        self._password = password
        self.es_client = es_client
        self.query_log_enable = options.query_log_enable
        self.debug_mode = options.debug_mode
        self.global_slow_query_ms = options.global_slow_query_ms

        self.bulk_processor = self._start_bulk_processor(options.bulk)
        if self.bulk_processor is not None:
            self.bulk_config = self.bulk_processor.config
        else:
            self.bulk_config = normalize_bulk_config(options.bulk, name)

        self.indices = IndexCache(es_client)
        self.docs = DocumentOperationTool(es_client, self.bulk_processor)
        self.queries = QueryTool(
            es_client,
            debug_mode=self.debug_mode,
            query_log_enable=self.query_log_enable,
            global_slow_query_ms=self.global_slow_query_ms,
        )

    def _start_bulk_processor(self, config: BulkConfig | None) -> BulkProcessor | None:
        """启动批量处理器，失败时只记录日志，客户端仍可用于同步操作."""
        try:
            return BulkProcessor(self.es_client, config, name=self.name).start()
        except Exception as e:
            logger.error(f"客户端 '{self.name}' 初始化批量处理器失败: {e}")
            return None

    def add_index_cache(self, *index_names: str) -> None:
        self.indices.add_index_cache(*index_names)

    def delete_index_cache(self, *index_names: str) -> None:
        self.indices.delete_index_cache(*index_names)

    def flush(self) -> None:
        """立即提交批量管道中所有缓冲的操作."""
        if self.bulk_processor is not None:
            self.bulk_processor.flush()

    def close(self) -> None:
        """关闭批量处理器（先排空并提交剩余操作），再关闭底层连接."""
        if self.bulk_processor is not None:
            self.bulk_processor.close()
        self.es_client.close()

    def __enter__(self) -> ESClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ESClient(name={self.name!r}, urls={self.urls!r})"
