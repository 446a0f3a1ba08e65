"""文档操作模块.

提供单文档与批量文档的创建、更新、删除、UPSERT 操作，支持路由键、
乐观并发版本控制和写入可见性策略。

示例用法:
    >>> from elasticlink.documents import DocumentOperationTool, RefreshPolicy
    >>> docs = DocumentOperationTool(es_client, bulk_processor)
    >>> docs.create("users", "1", "", {"name": "Alice"}, refresh=RefreshPolicy.WAIT_FOR)
    >>> docs.bulk_update("users", "1", "", {"age": 30})
"""

from .exceptions import (
    DocumentNotFoundError,
    DocumentOperationError,
    VersionConflictError,
)
from .models import MgetItem, RefreshPolicy
from .tool import DocumentOperationTool

__all__ = [
    "DocumentOperationTool",
    "MgetItem",
    "RefreshPolicy",
    "DocumentOperationError",
    "DocumentNotFoundError",
    "VersionConflictError",
]
