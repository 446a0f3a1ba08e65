"""批量管道数据模型定义模块."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from elasticsearch.helpers import expand_action

# 单位换算
MIB = 1024 * 1024

# 批量管道参数上限
MAX_BULK_SIZE = 100 * MIB
MAX_BULK_ACTIONS = 10000
MAX_FLUSH_INTERVAL = 60.0


class BulkAction(Enum):
    """批量操作类型枚举."""

    INDEX = "index"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPSERT = "upsert"


class VersionType(Enum):
    """乐观并发控制版本类型.

    Attributes:
        EXTERNAL: 由调用方提供并保证单调递增的版本号
        INTERNAL: 由 ES 自身维护的版本号
    """

    EXTERNAL = "external"
    INTERNAL = "internal"


@dataclass
class BulkRequest:
    """批量管道中的单个操作.

    Attributes:
        action: 操作类型
        index_name: 索引名称
        doc_id: 文档ID，为空时由 ES 自动生成（仅 INDEX、CREATE）
        routing: 路由键，为空时不设置
        version: 乐观并发控制版本号
        version_type: 版本类型，仅在 version 不为 None 时生效
        doc: 完整文档（INDEX、CREATE 的 source，UPSERT 的 upsert 文档）
        update: 部分更新字段（UPDATE、UPSERT）
    """

    action: BulkAction
    index_name: str
    doc_id: str = ""
    routing: str = ""
    version: int | None = None
    version_type: VersionType = VersionType.EXTERNAL
    doc: Any = None
    update: dict[str, Any] | None = None

    def to_action(self) -> dict[str, Any]:
        """转换为 elasticsearch.helpers 可识别的操作字典."""
        op_type = self.action.value
        if self.action == BulkAction.UPSERT:
            op_type = "update"

        action: dict[str, Any] = {"_op_type": op_type, "_index": self.index_name}
        if self.doc_id:
            action["_id"] = self.doc_id
        if self.routing:
            action["_routing"] = self.routing
        if self.version is not None:
            action["_version"] = self.version
            action["_version_type"] = self.version_type.value

        if self.action in (BulkAction.INDEX, BulkAction.CREATE):
            action["_source"] = self.doc if self.doc is not None else {}
        elif self.action == BulkAction.UPDATE:
            action["doc"] = self.update or {}
        elif self.action == BulkAction.UPSERT:
            action["doc"] = self.update or {}
            # 未提供插入文档时，文档不存在则直接用 update 创建
            if self.doc is None:
                action["doc_as_upsert"] = True
            else:
                action["upsert"] = self.doc
        return action

    def to_lines(self) -> list[dict[str, Any]]:
        """展开为 _bulk 请求体中的行（动作行 + 可选的数据行）."""
        header, payload = expand_action(self.to_action())
        if payload is None:
            return [header]
        return [header, payload]

    def estimated_size(self) -> int:
        """估算该操作在 NDJSON 请求体中占用的字节数."""
        return sum(
            len(json.dumps(line, default=str, ensure_ascii=False).encode("utf-8")) + 1
            for line in self.to_lines()
        )


@dataclass
class BulkDoc:
    """批量文档描述的公共字段.

    Attributes:
        doc_id: 文档ID
        routing: 路由键
        version: 版本号，None 表示不做版本校验
        version_type: 版本类型
    """

    doc_id: str = ""
    routing: str = ""
    version: int | None = None
    version_type: VersionType = VersionType.EXTERNAL


@dataclass
class BulkCreateDoc(BulkDoc):
    """批量创建文档描述."""

    doc: Any = None


@dataclass
class BulkUpdateDoc(BulkDoc):
    """批量更新文档描述，不支持 version（同步批量接口遇到会拒绝）."""

    update: dict[str, Any] = field(default_factory=dict)


@dataclass
class BulkUpsertDoc(BulkDoc):
    """批量 UPSERT 文档描述，文档不存在时写入 doc，存在时合并 update.

    与 BulkUpdateDoc 相同，不支持 version。
    """

    doc: Any = None
    update: dict[str, Any] = field(default_factory=dict)


# 批次完成回调：(execution_id, requests, response, error)
BulkAfterFunc = Callable[
    [int, list[BulkRequest], dict[str, Any] | None, Exception | None], None
]


@dataclass
class BulkConfig:
    """批量管道配置.

    Attributes:
        name: 处理器名称，为空时使用客户端名称
        workers: 后台工作线程数，必须 >= 1
        flush_interval: 定时刷新间隔（秒），上限 60
        bulk_actions: 单批次最大操作数，上限 10000
        bulk_size: 单批次最大请求体字节数，上限 100MiB
        after: 批次完成回调，每个提交的批次恰好调用一次
        cancel_event: 管道生命周期信号，置位后后台线程停止刷新

    Examples:
        >>> config = BulkConfig(workers=4, bulk_actions=1000, flush_interval=5)
    """

    name: str = ""
    workers: int = 3
    flush_interval: float = 1.0
    bulk_actions: int = 500
    bulk_size: int = 5 * MIB
    after: BulkAfterFunc | None = None
    cancel_event: threading.Event | None = None


@dataclass
class BulkErrorItem:
    """批量操作错误项数据类.

    Attributes:
        index_name: 索引名称
        doc_id: 文档ID
        error_type: 错误类型
        error_reason: 错误原因
        status: HTTP状态码
        caused_by: 根本原因
        operation: 失败的操作类型
    """

    index_name: str
    doc_id: str | None
    error_type: str
    error_reason: str
    status: int
    caused_by: str | None = None
    operation: str | None = None


@dataclass
class BulkResult:
    """同步批量请求的聚合结果.

    顶层请求成功并不代表每一项都成功，调用方需要检查 errors。

    Attributes:
        took: ES 报告的耗时（毫秒）
        has_errors: 响应中是否存在失败项
        items: 每一项的原始结果
        errors: 失败项详情
        raw: 原始响应
    """

    took: int = 0
    has_errors: bool = False
    items: list[dict[str, Any]] = field(default_factory=list)
    errors: list[BulkErrorItem] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> int:
        """成功项数量."""
        return len(self.items) - len(self.errors)

    @property
    def failed(self) -> int:
        """失败项数量."""
        return len(self.errors)

    def is_success(self) -> bool:
        """判断是否全部成功."""
        return not self.errors

    @classmethod
    def from_response(cls, response: dict[str, Any]) -> BulkResult:
        """从 _bulk 响应解析聚合结果."""
        result = cls(
            took=response.get("took", 0),
            has_errors=bool(response.get("errors", False)),
            items=list(response.get("items", [])),
            raw=response,
        )
        for item in result.items:
            for op_type, info in item.items():
                error_info = info.get("error")
                if not error_info:
                    continue
                caused_by = None
                if isinstance(error_info, dict) and "caused_by" in error_info:
                    caused_by_info = error_info["caused_by"]
                    caused_by = f"{caused_by_info.get('type', '')}: {caused_by_info.get('reason', '')}"
                if not isinstance(error_info, dict):
                    error_info = {"reason": str(error_info)}
                result.errors.append(
                    BulkErrorItem(
                        index_name=info.get("_index", ""),
                        doc_id=info.get("_id"),
                        error_type=error_info.get("type", "unknown"),
                        error_reason=error_info.get("reason", "unknown error"),
                        status=info.get("status", 0),
                        caused_by=caused_by,
                        operation=op_type,
                    )
                )
        return result

    def get_error_summary(self) -> str:
        """获取错误摘要."""
        if not self.errors:
            return "No errors"
        summary = f"Total errors: {len(self.errors)}\n"
        for i, error in enumerate(self.errors[:10], 1):  # 只显示前10个错误
            summary += (
                f"{i}. [{error.operation or 'unknown'}] "
                f"Index: {error.index_name}, DocID: {error.doc_id}, "
                f"Status: {error.status}, Reason: {error.error_reason}\n"
            )
        if len(self.errors) > 10:
            summary += f"... and {len(self.errors) - 10} more errors\n"
        return summary


@dataclass
class BulkProcessorStats:
    """批量处理器统计信息.

    Attributes:
        flushed: 定时或手动触发的刷新次数
        committed: 已提交的批次数
        indexed: INDEX 成功数
        created: CREATE 成功数
        updated: UPDATE/UPSERT 成功数
        deleted: DELETE 成功数
        succeeded: 成功项总数
        failed: 失败项总数（含整批失败）
    """

    flushed: int = 0
    committed: int = 0
    indexed: int = 0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    succeeded: int = 0
    failed: int = 0
