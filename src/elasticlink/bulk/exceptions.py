"""批量管道异常定义模块."""

from ..exceptions import ElasticLinkError


class BulkError(ElasticLinkError):
    """批量管道基础异常类."""

    pass


class BulkProcessorError(BulkError):
    """批量处理器运行异常."""

    pass


class BulkProcessorClosedError(BulkProcessorError):
    """向已关闭的批量处理器提交操作时抛出."""

    pass
