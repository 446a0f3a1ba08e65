"""文档操作异常定义模块."""

from ..exceptions import ElasticLinkError


class DocumentOperationError(ElasticLinkError):
    """文档操作基础异常类.

    同步文档操作的传输错误和 ES 返回的错误都会包装为该异常或其子类，
    原始异常可通过 __cause__ 获取。
    """

    pass


class VersionConflictError(DocumentOperationError):
    """版本冲突异常（HTTP 409），通常由乐观并发控制校验失败引起."""

    pass


class DocumentNotFoundError(DocumentOperationError):
    """文档或索引不存在异常（HTTP 404）."""

    pass
