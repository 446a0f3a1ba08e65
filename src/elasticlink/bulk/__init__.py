"""批量管道模块.

该模块提供后台异步批量写入能力，包括：
- 按操作数、字节数、时间间隔自动分批提交
- 多工作线程并行提交
- 每批次恰好一次的完成回调
- 同步批量请求的逐项结果解析

示例用法:
    >>> from elasticlink.bulk import BulkProcessor, BulkConfig, BulkRequest, BulkAction
    >>> processor = BulkProcessor(es_client, BulkConfig(workers=2)).start()
    >>> processor.add(BulkRequest(BulkAction.INDEX, "users", "1", doc={"name": "Alice"}))
    >>> processor.close()
"""

from .exceptions import (
    BulkError,
    BulkProcessorClosedError,
    BulkProcessorError,
)
from .models import (
    BulkAction,
    BulkAfterFunc,
    BulkConfig,
    BulkCreateDoc,
    BulkDoc,
    BulkErrorItem,
    BulkProcessorStats,
    BulkRequest,
    BulkResult,
    BulkUpdateDoc,
    BulkUpsertDoc,
    VersionType,
)
from .tool import BulkProcessor, default_after_callback, normalize_bulk_config

__all__ = [
    # 处理器
    "BulkProcessor",
    "default_after_callback",
    "normalize_bulk_config",
    # 模型
    "BulkAction",
    "BulkAfterFunc",
    "BulkConfig",
    "BulkCreateDoc",
    "BulkDoc",
    "BulkErrorItem",
    "BulkProcessorStats",
    "BulkRequest",
    "BulkResult",
    "BulkUpdateDoc",
    "BulkUpsertDoc",
    "VersionType",
    # 异常
    "BulkError",
    "BulkProcessorError",
    "BulkProcessorClosedError",
]
