"""查询与滚动遍历异常定义模块."""

from ..exceptions import ElasticLinkError


class QueryError(ElasticLinkError):
    """查询基础异常类."""

    pass


class QueryExecutionError(QueryError):
    """查询执行失败."""

    pass


class ScrollCancelledError(QueryError):
    """滚动遍历被取消，服务端游标已释放."""

    pass
