"""连接管理数据模型定义模块."""

from dataclasses import dataclass

from ..bulk.models import BulkConfig
from .exceptions import ConnectionConfigError

_SUPPORTED_SCHEMES = ("", "http", "https")


@dataclass
class ClientOptions:
    """客户端可选配置.

    Attributes:
        query_log_enable: 是否打印所有查询 DSL，默认 False
        global_slow_query_ms: 全局慢查询阈值（毫秒），0 表示关闭
        bulk: 批量管道配置，None 时使用默认配置
        debug_mode: 调试模式，打印传输层请求日志和所有查询 DSL。会把进程级的
            elastic_transport 日志器调到 INFO 且不会恢复，影响进程内所有客户端
        scheme: 为未指定协议的地址补全协议，设置后使用宽松的 TLS 校验并跳过启动健康检查

    Raises:
        ConnectionConfigError: 当参数不合法时抛出

    Examples:
        >>> options = ClientOptions(
        ...     query_log_enable=True,
        ...     global_slow_query_ms=500,
        ...     bulk=BulkConfig(workers=4),
        ... )
    """

    query_log_enable: bool = False
    global_slow_query_ms: int = 0
    bulk: BulkConfig | None = None
    debug_mode: bool = False
    scheme: str = ""

    def __post_init__(self) -> None:
        """校验客户端配置参数合法性."""
        if self.global_slow_query_ms < 0:
            raise ConnectionConfigError(
                f"global_slow_query_ms 必须 >= 0，当前值: {self.global_slow_query_ms}"
            )
        if self.scheme not in _SUPPORTED_SCHEMES:
            raise ConnectionConfigError(f"不支持的 scheme: {self.scheme}")
