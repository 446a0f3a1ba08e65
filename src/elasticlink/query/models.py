"""查询与滚动遍历数据模型定义模块."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..typing import OrderList


@dataclass
class QueryOptions:
    """查询选项.

    所有字段默认均为"未设置/关闭"。

    Attributes:
        orders: 排序列表，格式 [{字段名: 是否升序}]，按列表顺序应用，第一项为主排序键
        highlight: 高亮配置（ES highlight DSL）
        profile: 是否开启查询分析
        enable_dsl: 是否打印本次查询的 DSL
        include_fields: 只返回这些字段，空列表表示不限制
        exclude_fields: 不返回这些字段，空列表表示不限制
        slow_query_ms: 慢查询阈值（毫秒），0 表示使用客户端全局阈值
        preference: 分片偏好，为空时使用 "_local"
        fetch_source: 是否返回 _source，None 表示默认返回

    Examples:
        >>> options = QueryOptions(
        ...     orders=[{"create_time": False}, {"_id": True}],
        ...     include_fields=["name", "create_time"],
        ...     slow_query_ms=500,
        ... )
    """

    orders: OrderList = field(default_factory=list)
    highlight: dict[str, Any] | None = None
    profile: bool = False
    enable_dsl: bool = False
    include_fields: list[str] = field(default_factory=list)
    exclude_fields: list[str] = field(default_factory=list)
    slow_query_ms: int = 0
    preference: str = ""
    fetch_source: bool | None = None


@dataclass
class ScrollPage:
    """滚动遍历的一页结果.

    Attributes:
        response: 本页的 ES 原始响应，获取失败时为 None
        error: 获取本页时发生的异常
    """

    response: dict[str, Any] | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def hits(self) -> list[dict[str, Any]]:
        if not self.response:
            return []
        return self.response.get("hits", {}).get("hits", [])

    @property
    def took(self) -> int:
        if not self.response:
            return 0
        return self.response.get("took", 0)
