"""连接管理模块 - 统一管理 ES 客户端的创建、注册和生命周期.

主要组件:
    - ConnectionManager: 按名称注册和管理多个客户端
    - ESClient: 单个逻辑客户端，持有批量处理器、索引缓存、文档与查询工具
    - ClientOptions: 客户端可选配置

使用示例:
    from elasticlink.connection import ConnectionManager

    manager = ConnectionManager()
    client = manager.init_client("default", ["http://localhost:9200"], "elastic", "changeme")
"""

from .client import ESClient
from .exceptions import (
    ClientInitError,
    ClientNotFoundError,
    ConnectionConfigError,
    ESClientError,
)
from .models import ClientOptions
from .tool import ConnectionManager

__all__ = [
    # 管理器与客户端
    "ConnectionManager",
    "ESClient",
    # 模型
    "ClientOptions",
    # 异常
    "ESClientError",
    "ConnectionConfigError",
    "ClientInitError",
    "ClientNotFoundError",
]
