"""连接管理工具模块.

提供 ConnectionManager 类，按名称注册和管理多个 ESClient，
统一负责底层客户端的构建、启动健康检查和关闭。

使用示例:
    from elasticlink.connection import ConnectionManager, ClientOptions

    with ConnectionManager() as manager:
        manager.init_client("default", ["http://localhost:9200"], "elastic", "changeme")
        client = manager.get_client("default")
"""

from __future__ import annotations

import logging
from typing import Any

from elasticsearch import Elasticsearch

from ..constants import DEFAULT_CLIENT, SIMPLE_CLIENT, STARTUP_HEALTHCHECK_TIMEOUT
from .client import ESClient
from .exceptions import (
    ClientInitError,
    ClientNotFoundError,
    ConnectionConfigError,
)
from .models import ClientOptions

logger = logging.getLogger(__name__)


def _apply_scheme(urls: list[str], scheme: str) -> list[str]:
    """为未指定协议的地址补全协议."""
    if not scheme:
        return list(urls)
    return [url if "://" in url else f"{scheme}://{url}" for url in urls]


class ConnectionManager:
    """ES 客户端连接管理器.

    显式的客户端注册表，替代进程级全局状态：在进程启动时创建，向下传递，
    进程结束时调用 close_all()。同名重复初始化会覆盖旧客户端但不会关闭它，
    调用方应避免重复初始化仍在使用的名称，也不要并发初始化同一名称。

    Attributes:
        _clients: 按名称注册的客户端字典

    Examples:
        >>> manager = ConnectionManager()
        >>> manager.init_client("default", ["http://localhost:9200"], "elastic", "changeme")
        >>> client = manager.get_client("default")
        >>> manager.close_all()
    """

    def __init__(self) -> None:
        self._clients: dict[str, ESClient] = {}

    def _create_es_client(
        self,
        urls: list[str],
        username: str,
        password: str,
        verify_certs: bool = True,
        healthcheck: bool = True,
    ) -> Elasticsearch:
        """使用固定的基础配置构建 Elasticsearch 实例.

        基础配置：Basic Auth、关闭节点嗅探（拓扑发现由专门的协调节点负责）、
        启动时以 15 秒超时进行健康检查。

        Args:
            urls: ES 节点地址列表
            username: Basic Auth 用户名
            password: Basic Auth 密码
            verify_certs: 是否校验 TLS 证书
            healthcheck: 是否进行启动健康检查

        Returns:
            Elasticsearch 实例

        Raises:
            ClientInitError: 构建失败或健康检查找不到可用节点时抛出
        """
        kwargs: dict[str, Any] = {
            "hosts": urls,
            "sniff_on_start": False,
            "sniff_on_node_failure": False,
        }

        # Basic Auth 认证
        if username or password:
            kwargs["basic_auth"] = (username, password)

        # 宽松信任模式，仅对 https 节点生效
        if not verify_certs and any(url.startswith("https") for url in urls):
            kwargs["verify_certs"] = False
            kwargs["ssl_show_warn"] = False

        try:
            es_client = Elasticsearch(**kwargs)
        except Exception as e:
            raise ClientInitError(f"创建 ES 客户端失败 ({urls}): {e}") from e

        if healthcheck:
            try:
                reachable = bool(
                    es_client.options(request_timeout=STARTUP_HEALTHCHECK_TIMEOUT).ping()
                )
            except Exception as e:
                logger.warning(f"ES 健康检查失败 ({urls}): {e}")
                reachable = False
            if not reachable:
                es_client.close()
                raise ClientInitError(f"no Elasticsearch node available: {urls}")

        return es_client

    def _register(self, name: str, client: ESClient) -> ESClient:
        if name in self._clients:
            logger.warning(f"客户端 '{name}' 已存在，旧客户端将被替换且不会被关闭")
        self._clients[name] = client
        logger.info(f"客户端 '{name}' 初始化成功: {client.urls}")
        return client

    def init_client(
        self,
        name: str,
        urls: list[str],
        username: str,
        password: str,
    ) -> ESClient:
        """使用默认配置初始化并注册客户端.

        Args:
            name: 客户端名称
            urls: ES 节点地址列表，不可为空
            username: Basic Auth 用户名
            password: Basic Auth 密码

        Returns:
            已注册的 ESClient

        Raises:
            ConnectionConfigError: urls 为空时抛出
            ClientInitError: 底层客户端构建失败时抛出，不会注册任何客户端
        """
        return self.init_client_with_options(name, urls, username, password)

    def init_client_with_options(
        self,
        name: str,
        urls: list[str],
        username: str,
        password: str,
        options: ClientOptions | None = None,
    ) -> ESClient:
        """使用自定义配置初始化并注册客户端.

        debug_mode 会把进程级的 elastic_transport 日志器调到 INFO，关闭客户端时不会恢复。

        Args:
            name: 客户端名称
            urls: ES 节点地址列表，不可为空
            username: Basic Auth 用户名
            password: Basic Auth 密码
            options: 客户端可选配置

        Returns:
            已注册的 ESClient

        Raises:
            ConnectionConfigError: urls 为空时抛出
            ClientInitError: 底层客户端构建失败时抛出，不会注册任何客户端
        """
        if not urls:
            raise ConnectionConfigError("urls 不能为空，请提供至少一个 ES 节点地址")
        options = options or ClientOptions()

        if options.debug_mode:
            logging.getLogger("elastic_transport").setLevel(logging.INFO)

        relaxed = bool(options.scheme)
        urls = _apply_scheme(urls, options.scheme)
        es_client = self._create_es_client(
            urls,
            username,
            password,
            verify_certs=not relaxed,
            healthcheck=not relaxed,
        )
        client = ESClient(name, urls, username, password, es_client, options)
        return self._register(name, client)

    def init_simple_client(
        self,
        urls: list[str],
        username: str,
        password: str,
    ) -> ESClient:
        """初始化简易客户端并注册为 SIMPLE_CLIENT.

        简易客户端不做启动健康检查、关闭嗅探、不校验 TLS 证书，
        同时使用默认配置启动批量处理器。

        Raises:
            ConnectionConfigError: urls 为空时抛出
            ClientInitError: 底层客户端构建失败时抛出
        """
        if not urls:
            raise ConnectionConfigError("urls 不能为空，请提供至少一个 ES 节点地址")
        es_client = self._create_es_client(
            urls, username, password, verify_certs=False, healthcheck=False
        )
        client = ESClient(SIMPLE_CLIENT, urls, username, password, es_client)
        return self._register(SIMPLE_CLIENT, client)

    def get_client(self, name: str = DEFAULT_CLIENT) -> ESClient:
        """按名称获取客户端.

        Raises:
            ClientNotFoundError: 客户端未注册时抛出
        """
        try:
            return self._clients[name]
        except KeyError:
            raise ClientNotFoundError(f"未找到名称为 {name} 的客户端") from None

    def has_client(self, name: str) -> bool:
        return name in self._clients

    def client_names(self) -> list[str]:
        return list(self._clients)

    def close_client(self, name: str) -> None:
        """关闭并注销指定客户端.

        Raises:
            ClientNotFoundError: 客户端未注册时抛出
        """
        client = self.get_client(name)
        del self._clients[name]
        client.close()

    # ============================================================
    # 生命周期管理
    # ============================================================

    def __enter__(self) -> ConnectionManager:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close_all()

    def close_all(self) -> None:
        """关闭所有已注册的客户端并清空注册表.

        单个客户端关闭失败只记录日志，不影响其他客户端。
        """
        for name, client in list(self._clients.items()):
            try:
                client.close()
            except Exception as e:
                logger.error(f"关闭客户端 '{name}' 失败: {e}")
        self._clients.clear()
