"""连接管理异常定义模块."""

from ..exceptions import ElasticLinkError


class ESClientError(ElasticLinkError):
    """连接管理基础异常类.

    所有连接管理相关异常的基类，继承自 ElasticLinkError。
    """

    pass


class ConnectionConfigError(ESClientError):
    """连接配置校验异常.

    当配置参数不合法时抛出，例如 urls 为空、scheme 不受支持等。
    """

    pass


class ClientInitError(ESClientError):
    """客户端初始化异常.

    底层客户端构造失败或启动健康检查找不到可用节点时抛出，
    此时不会在注册表中留下任何记录。
    """

    pass


class ClientNotFoundError(ESClientError):
    """客户端未找到异常.

    当请求的客户端名称未在连接管理器中注册时抛出。
    """

    pass
