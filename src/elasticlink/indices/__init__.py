"""索引存在性缓存模块.

在建索引前查询缓存，避免在热路径上重复发起存在性检查；同一客户端上的
建索引操作串行执行。

示例用法:
    >>> from elasticlink.indices import IndexCache
    >>> cache = IndexCache(es_client)
    >>> cache.create_index("users", {"mappings": {"properties": {"name": {"type": "keyword"}}}}, force_check=True)
"""

from .exceptions import IndexCacheError, IndexCheckError, IndexCreateError
from .tool import IndexCache

__all__ = [
    "IndexCache",
    "IndexCacheError",
    "IndexCheckError",
    "IndexCreateError",
]
