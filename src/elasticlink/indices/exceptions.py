"""索引存在性缓存异常定义模块."""

from ..exceptions import ElasticLinkError


class IndexCacheError(ElasticLinkError):
    """索引缓存基础异常类."""

    pass


class IndexCheckError(IndexCacheError):
    """实时检查索引是否存在失败."""

    pass


class IndexCreateError(IndexCacheError):
    """创建索引失败."""

    pass
