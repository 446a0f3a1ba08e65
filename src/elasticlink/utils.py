"""elasticlink 通用工具函数模块."""

from __future__ import annotations

from typing import Any

from elastic_transport import ApiResponse
from elasticsearch.dsl import Q


def response_body(response: Any) -> Any:
    """取出 ES 响应的原始内容.

    elasticsearch 客户端返回 ApiResponse 包装对象，这里统一转换为
    dict/bool 等原始值，便于记录日志和传递给回调。
    """
    if isinstance(response, ApiResponse):
        return response.body
    return response


def join_routing(routes: list[str] | None) -> str | None:
    """将多个路由键拼接为逗号分隔的字符串，为空时返回 None."""
    if not routes:
        return None
    routing = ",".join(r for r in routes if r)
    return routing or None


def with_timeout(es_client: Any, timeout: float | None) -> Any:
    """为单次请求设置超时时间，timeout 为 None 时原样返回客户端."""
    if timeout is None:
        return es_client
    return es_client.options(request_timeout=timeout)


def query_to_dict(query: Any) -> dict[str, Any]:
    """将查询条件转换为 DSL 字典.

    支持 elasticsearch.dsl 的 Query 对象、原始 DSL 字典，None 表示 match_all。
    """
    if query is None:
        return Q("match_all").to_dict()
    if hasattr(query, "to_dict"):
        return query.to_dict()
    return dict(query)
