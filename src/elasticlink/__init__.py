"""ElasticLink - Elasticsearch 客户端连接、批量写入与查询工具包.

对官方 elasticsearch 客户端做一层轻量封装，提供按名称管理的多客户端连接、
后台批量写入管道、索引存在性缓存、文档操作门面以及分页查询和滚动遍历。

主要功能:
    - ConnectionManager: 按名称注册和管理多个 ES 客户端
    - BulkProcessor: 后台批量写入管道，按数量、大小或时间间隔提交
    - IndexCache: 索引存在性缓存，串行化建索引
    - DocumentOperationTool: 单文档、批量和按查询的文档操作
    - QueryTool: 分页查询、慢查询日志和滚动遍历

使用示例:
    from elasticlink import ConnectionManager

    with ConnectionManager() as manager:
        client = manager.init_client("default", ["http://localhost:9200"], "elastic", "changeme")
        client.docs.bulk_create("users", "1", "", {"name": "Alice"})
        res = client.queries.query("users", [], None, 0, 10)
"""

__version__ = "0.1.0"

# 导出批量写入
from elasticlink.bulk import (
    BulkAction,
    BulkConfig,
    BulkProcessor,
    BulkRequest,
    BulkResult,
    VersionType,
)

# 导出连接管理
from elasticlink.connection import ClientOptions, ConnectionManager, ESClient

# 导出常量
from elasticlink.constants import (
    DEFAULT_CLIENT,
    DEFAULT_READ_CLIENT,
    DEFAULT_WRITE_CLIENT,
    SIMPLE_CLIENT,
)

# 导出文档操作
from elasticlink.documents import DocumentOperationTool, MgetItem, RefreshPolicy

# 导出异常
from elasticlink.exceptions import ElasticLinkError

# 导出索引缓存
from elasticlink.indices import IndexCache

# 导出查询
from elasticlink.query import QueryOptions, QueryTool, ScrollCursor

__all__ = [
    # 版本
    "__version__",
    # 常量
    "DEFAULT_CLIENT",
    "DEFAULT_READ_CLIENT",
    "DEFAULT_WRITE_CLIENT",
    "SIMPLE_CLIENT",
    # 连接管理
    "ConnectionManager",
    "ESClient",
    "ClientOptions",
    # 批量写入
    "BulkProcessor",
    "BulkConfig",
    "BulkRequest",
    "BulkResult",
    "BulkAction",
    "VersionType",
    # 索引缓存
    "IndexCache",
    # 文档操作
    "DocumentOperationTool",
    "MgetItem",
    "RefreshPolicy",
    # 查询
    "QueryTool",
    "QueryOptions",
    "ScrollCursor",
    # 异常
    "ElasticLinkError",
]
