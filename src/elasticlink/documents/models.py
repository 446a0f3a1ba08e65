"""文档操作数据模型定义模块."""

from dataclasses import dataclass
from enum import Enum


class RefreshPolicy(Enum):
    """写入后的可见性策略.

    Attributes:
        FALSE: 默认，等待周期性刷新后可见
        WAIT_FOR: 请求阻塞到下一次周期刷新使变更可见，不强制刷新
        TRUE: 立即强制刷新，延迟更高，谨慎使用
    """

    FALSE = "false"
    WAIT_FOR = "wait_for"
    TRUE = "true"


@dataclass
class MgetItem:
    """批量获取的单个文档定位信息."""

    index_name: str
    doc_id: str
    routing: str = ""
