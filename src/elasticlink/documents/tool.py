"""文档操作核心工具类."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import ApiError, ConflictError, NotFoundError, TransportError

from ..bulk.exceptions import BulkProcessorClosedError
from ..bulk.models import (
    BulkAction,
    BulkCreateDoc,
    BulkDoc,
    BulkRequest,
    BulkResult,
    BulkUpdateDoc,
    BulkUpsertDoc,
    VersionType,
)
from ..bulk.tool import BulkProcessor
from ..constants import DEFAULT_PREFERENCE, DEFAULT_SCRIPT_LANG
from ..typing import DocumentDict, QueryType, UpdateDict
from ..utils import join_routing, query_to_dict, response_body, with_timeout
from .exceptions import DocumentNotFoundError, DocumentOperationError, VersionConflictError
from .models import MgetItem, RefreshPolicy

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(operation: str, index_name: str, doc_id: str = "") -> Iterator[None]:
    """将 elasticsearch 异常转换为文档操作异常."""
    target = f"{index_name}/{doc_id}" if doc_id else index_name
    try:
        yield
    except ConflictError as e:
        raise VersionConflictError(f"{operation} '{target}' 版本冲突: {e}") from e
    except NotFoundError as e:
        raise DocumentNotFoundError(f"{operation} '{target}' 不存在: {e}") from e
    except (ApiError, TransportError) as e:
        raise DocumentOperationError(f"{operation} '{target}' 失败: {e}") from e


def _reject_versions(operation: str, docs: Sequence[BulkDoc]) -> None:
    """update 操作不支持版本校验，描述中设置了 version 时直接拒绝."""
    versioned = [doc.doc_id for doc in docs if doc.version is not None]
    if versioned:
        raise DocumentOperationError(
            f"{operation} 不支持 version 参数，请移除以下文档的 version: {versioned}"
        )


class DocumentOperationTool:
    """文档操作门面.

    提供两类写操作：
    - 同步操作：每次调用恰好一次网络往返，错误直接抛出
    - 管道操作（bulk_ 前缀）：只构造请求并放入批量处理器队列，立即返回，
      结果只能通过批量处理器的完成回调获得

    所有 routing 参数仅在非空时生效。

    Args:
        es_client: Elasticsearch 客户端实例
        bulk_processor: 管道操作使用的批量处理器，None 时管道操作不可用
    """

    def __init__(
        self,
        es_client: Elasticsearch,
        bulk_processor: BulkProcessor | None = None,
    ):
        self.es_client = es_client
        self.bulk_processor = bulk_processor

    # ============================================================
    # 同步单文档操作
    # ============================================================

    def create(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        doc: DocumentDict,
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """创建文档，文档已存在时失败.

        Args:
            index_name: 索引名称
            doc_id: 文档ID，为空时由 ES 自动生成
            routing: 路由键
            doc: 文档内容
            refresh: 写入可见性策略
            timeout: 请求超时时间（秒）

        Returns:
            ES 原始响应

        Raises:
            VersionConflictError: 文档已存在时抛出
            DocumentOperationError: 其他错误
        """
        kwargs: dict[str, Any] = {
            "index": index_name,
            "document": doc,
            "op_type": "create",
            "refresh": refresh.value,
        }
        if doc_id:
            kwargs["id"] = doc_id
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("create", index_name, doc_id):
            return response_body(with_timeout(self.es_client, timeout).index(**kwargs))

    def get(
        self,
        index_name: str,
        doc_id: str,
        routing: str = "",
        timeout: float | None = None,
    ) -> DocumentDict:
        """按ID获取文档内容，优先读取本地分片.

        Raises:
            DocumentNotFoundError: 文档不存在时抛出
        """
        kwargs: dict[str, Any] = {
            "index": index_name,
            "id": doc_id,
            "preference": DEFAULT_PREFERENCE,
        }
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("get", index_name, doc_id):
            response = response_body(with_timeout(self.es_client, timeout).get(**kwargs))
        if not response.get("found", True):
            raise DocumentNotFoundError(f"get '{index_name}/{doc_id}' 不存在")
        return response.get("_source", {})

    def mget(
        self,
        items: Sequence[MgetItem],
        timeout: float | None = None,
    ) -> list[DocumentDict | None]:
        """批量获取文档，按传入顺序返回，不存在的文档对应 None."""
        if not items:
            return []
        docs = []
        for item in items:
            entry: dict[str, Any] = {"_index": item.index_name, "_id": item.doc_id}
            if item.routing:
                entry["routing"] = item.routing
            docs.append(entry)
        with _translate_errors("mget", ",".join(sorted({i.index_name for i in items}))):
            response = response_body(
                with_timeout(self.es_client, timeout).mget(
                    docs=docs, preference=DEFAULT_PREFERENCE
                )
            )
        return [
            doc.get("_source") if doc.get("found") else None
            for doc in response.get("docs", [])
        ]

    def delete(
        self,
        index_name: str,
        doc_id: str,
        routing: str = "",
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """删除文档."""
        kwargs: dict[str, Any] = {
            "index": index_name,
            "id": doc_id,
            "refresh": refresh.value,
        }
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("delete", index_name, doc_id):
            return response_body(with_timeout(self.es_client, timeout).delete(**kwargs))

    def delete_with_version(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        version: int,
        version_type: VersionType = VersionType.EXTERNAL,
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """带版本校验删除文档.

        Raises:
            VersionConflictError: 版本校验失败时抛出
        """
        kwargs: dict[str, Any] = {
            "index": index_name,
            "id": doc_id,
            "version": version,
            "version_type": version_type.value,
            "refresh": refresh.value,
        }
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("delete", index_name, doc_id):
            return response_body(with_timeout(self.es_client, timeout).delete(**kwargs))

    def delete_by_query(
        self,
        index_name: str,
        query: QueryType,
        routing: str = "",
        refresh: bool = False,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """按查询删除文档，遇到版本冲突时继续执行而不是中止."""
        kwargs: dict[str, Any] = {
            "index": index_name,
            "query": query_to_dict(query),
            "conflicts": "proceed",
            "refresh": refresh,
        }
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("delete_by_query", index_name):
            return response_body(
                with_timeout(self.es_client, timeout).delete_by_query(**kwargs)
            )

    def update(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        update: UpdateDict,
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """部分更新文档，文档不存在时失败."""
        kwargs: dict[str, Any] = {
            "index": index_name,
            "id": doc_id,
            "doc": update,
            "refresh": refresh.value,
        }
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("update", index_name, doc_id):
            return response_body(with_timeout(self.es_client, timeout).update(**kwargs))

    def update_query(
        self,
        index_name: str,
        routings: list[str] | None,
        query: QueryType,
        script: str,
        script_params: dict[str, Any] | None = None,
        refresh: bool = False,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """按查询执行 painless 脚本更新，遇到版本冲突时继续执行.

        Returns:
            ES 原始响应，包含 updated、version_conflicts、failures 等统计
        """
        kwargs: dict[str, Any] = {
            "index": index_name,
            "query": query_to_dict(query),
            "script": {
                "source": script,
                "params": script_params or {},
                "lang": DEFAULT_SCRIPT_LANG,
            },
            "conflicts": "proceed",
            "refresh": refresh,
        }
        routing = join_routing(routings)
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("update_by_query", index_name):
            return response_body(
                with_timeout(self.es_client, timeout).update_by_query(**kwargs)
            )

    def upsert(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        update: UpdateDict,
        doc: DocumentDict | None = None,
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """文档存在时合并 update，不存在时写入 doc（doc 为 None 时写入 update）."""
        kwargs: dict[str, Any] = {
            "index": index_name,
            "id": doc_id,
            "doc": update,
            "refresh": refresh.value,
        }
        if doc is None:
            kwargs["doc_as_upsert"] = True
        else:
            kwargs["upsert"] = doc
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("upsert", index_name, doc_id):
            return response_body(with_timeout(self.es_client, timeout).update(**kwargs))

    def upsert_with_version(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        doc: DocumentDict,
        version: int,
        version_type: VersionType = VersionType.EXTERNAL,
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """带版本校验整体写入文档（index 操作）.

        Raises:
            VersionConflictError: 版本号不大于当前版本时抛出
        """
        kwargs: dict[str, Any] = {
            "index": index_name,
            "id": doc_id,
            "document": doc,
            "op_type": "index",
            "version": version,
            "version_type": version_type.value,
            "refresh": refresh.value,
        }
        if routing:
            kwargs["routing"] = routing
        with _translate_errors("upsert", index_name, doc_id):
            return response_body(with_timeout(self.es_client, timeout).index(**kwargs))

    # ============================================================
    # 管道操作（异步，无返回值）
    # ============================================================

    def _enqueue(self, request: BulkRequest) -> None:
        if self.bulk_processor is None:
            raise BulkProcessorClosedError("当前客户端没有可用的批量处理器")
        self.bulk_processor.add(request)

    def bulk_create(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        doc: DocumentDict,
    ) -> None:
        """将创建操作放入批量管道."""
        self._enqueue(
            BulkRequest(
                action=BulkAction.CREATE,
                index_name=index_name,
                doc_id=doc_id,
                routing=routing,
                doc=doc,
            )
        )

    def bulk_create_with_version(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        version: int,
        doc: DocumentDict,
        version_type: VersionType = VersionType.EXTERNAL,
    ) -> None:
        """将带版本的写入操作放入批量管道.

        create 操作不支持外部版本，这里使用 index 操作配合版本校验。
        """
        self._enqueue(
            BulkRequest(
                action=BulkAction.INDEX,
                index_name=index_name,
                doc_id=doc_id,
                routing=routing,
                version=version,
                version_type=version_type,
                doc=doc,
            )
        )

    def bulk_delete(
        self,
        index_name: str,
        doc_id: str,
        routing: str = "",
        version: int | None = None,
    ) -> None:
        """将删除操作放入批量管道，提供 version 时按外部版本校验."""
        self._enqueue(
            BulkRequest(
                action=BulkAction.DELETE,
                index_name=index_name,
                doc_id=doc_id,
                routing=routing,
                version=version,
            )
        )

    def bulk_delete_with_version(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        version: int,
        version_type: VersionType = VersionType.EXTERNAL,
    ) -> None:
        self._enqueue(
            BulkRequest(
                action=BulkAction.DELETE,
                index_name=index_name,
                doc_id=doc_id,
                routing=routing,
                version=version,
                version_type=version_type,
            )
        )

    def bulk_update(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        update: UpdateDict,
    ) -> None:
        """将部分更新操作放入批量管道."""
        self._enqueue(
            BulkRequest(
                action=BulkAction.UPDATE,
                index_name=index_name,
                doc_id=doc_id,
                routing=routing,
                update=update,
            )
        )

    def bulk_upsert(
        self,
        index_name: str,
        doc_id: str,
        routing: str,
        update: UpdateDict,
        doc: DocumentDict | None = None,
    ) -> None:
        """将 UPSERT 操作放入批量管道."""
        self._enqueue(
            BulkRequest(
                action=BulkAction.UPSERT,
                index_name=index_name,
                doc_id=doc_id,
                routing=routing,
                update=update,
                doc=doc,
            )
        )

    # ============================================================
    # 同步批量操作
    # ============================================================

    def _execute_bulk(
        self,
        index_name: str,
        requests: list[BulkRequest],
        refresh: RefreshPolicy,
        timeout: float | None,
    ) -> BulkResult:
        if not requests:
            return BulkResult()
        body = [line for request in requests for line in request.to_lines()]
        with _translate_errors("bulk", index_name):
            response = response_body(
                with_timeout(self.es_client, timeout).bulk(
                    operations=body, error_trace=True, refresh=refresh.value
                )
            )
        result = BulkResult.from_response(response)
        if result.errors:
            logger.warning(
                f"批量请求 '{index_name}': 成功 {result.success}, 失败 {result.failed}"
            )
        return result

    def bulk_create_docs(
        self,
        index_name: str,
        docs: Sequence[BulkCreateDoc],
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> BulkResult:
        """一次请求批量创建文档.

        带版本号的文档使用 index 操作并校验版本，其余使用 create 操作，
        文档已存在时该项失败。单项失败不会抛出异常，需检查返回结果。
        """
        requests = [
            BulkRequest(
                action=BulkAction.INDEX if doc.version is not None else BulkAction.CREATE,
                index_name=index_name,
                doc_id=doc.doc_id,
                routing=doc.routing,
                version=doc.version,
                version_type=doc.version_type,
                doc=doc.doc,
            )
            for doc in docs
        ]
        return self._execute_bulk(index_name, requests, refresh, timeout)

    def bulk_update_docs(
        self,
        index_name: str,
        updates: Sequence[BulkUpdateDoc],
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> BulkResult:
        """一次请求批量部分更新文档，单项失败需检查返回结果.

        Raises:
            DocumentOperationError: 任一描述设置了 version 时抛出，不发起请求
        """
        _reject_versions("bulk_update_docs", updates)
        requests = [
            BulkRequest(
                action=BulkAction.UPDATE,
                index_name=index_name,
                doc_id=update.doc_id,
                routing=update.routing,
                update=update.update,
            )
            for update in updates
        ]
        return self._execute_bulk(index_name, requests, refresh, timeout)

    def bulk_upsert_docs(
        self,
        index_name: str,
        docs: Sequence[BulkUpsertDoc],
        refresh: RefreshPolicy = RefreshPolicy.FALSE,
        timeout: float | None = None,
    ) -> BulkResult:
        """一次请求批量 UPSERT 文档，单项失败需检查返回结果.

        Raises:
            DocumentOperationError: 任一描述设置了 version 时抛出，不发起请求
        """
        _reject_versions("bulk_upsert_docs", docs)
        requests = [
            BulkRequest(
                action=BulkAction.UPSERT,
                index_name=index_name,
                doc_id=doc.doc_id,
                routing=doc.routing,
                update=doc.update,
                doc=doc.doc,
            )
            for doc in docs
        ]
        return self._execute_bulk(index_name, requests, refresh, timeout)
