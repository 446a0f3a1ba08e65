"""查询执行与滚动遍历模块.

主要组件:
    - QueryTool: 分页查询、滚动遍历
    - QueryOptions: 排序、高亮、字段过滤、慢查询阈值等查询选项
    - ScrollCursor: 惰性滚动游标，结束时释放服务端资源
    - ScrollPage: 滚动遍历的一页结果

使用示例:
    from elasticsearch.dsl import Q
    from elasticlink.query import QueryTool, QueryOptions

    tool = QueryTool(es_client)
    res = tool.query("users", [], Q("term", status="active"), 0, 20,
                     QueryOptions(orders=[{"create_time": False}]))
"""

from .exceptions import QueryError, QueryExecutionError, ScrollCancelledError
from .models import QueryOptions, ScrollPage
from .tool import QueryTool, ScrollCallback, ScrollCursor, build_search_body

__all__ = [
    # 工具
    "QueryTool",
    "ScrollCursor",
    "ScrollCallback",
    "build_search_body",
    # 模型
    "QueryOptions",
    "ScrollPage",
    # 异常
    "QueryError",
    "QueryExecutionError",
    "ScrollCancelledError",
]
