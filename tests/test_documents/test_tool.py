"""DocumentOperationTool 单元测试."""

from unittest.mock import MagicMock

import pytest
from elasticsearch import Elasticsearch
from elasticsearch.dsl import Q
from elasticsearch.exceptions import ConflictError, NotFoundError

from elasticlink.bulk import (
    BulkAction,
    BulkCreateDoc,
    BulkProcessorClosedError,
    BulkUpdateDoc,
    BulkUpsertDoc,
    VersionType,
)
from elasticlink.documents import (
    DocumentNotFoundError,
    DocumentOperationError,
    DocumentOperationTool,
    MgetItem,
    RefreshPolicy,
    VersionConflictError,
)


def _api_error(cls, status: int):
    """构造 elasticsearch API 异常."""
    return cls("error", meta=MagicMock(status=status), body={})


class _FakeStore:
    """按 (index, id, routing) 存储文档的内存替身."""

    def __init__(self) -> None:
        self.docs = {}

    def index(self, index, document, id=None, routing=None, op_type="index", **kwargs):
        key = (index, id, routing)
        if op_type == "create" and key in self.docs:
            raise _api_error(ConflictError, 409)
        self.docs[key] = dict(document)
        return {"_index": index, "_id": id, "result": "created"}

    def get(self, index, id, routing=None, **kwargs):
        key = (index, id, routing)
        if key not in self.docs:
            raise _api_error(NotFoundError, 404)
        return {"_index": index, "_id": id, "found": True, "_source": self.docs[key]}


@pytest.fixture
def es_client() -> MagicMock:
    return MagicMock(spec=Elasticsearch)


@pytest.fixture
def tool(es_client) -> DocumentOperationTool:
    return DocumentOperationTool(es_client)


# ============================================================
# 同步单文档操作
# ============================================================


class TestSyncOperations:
    """同步操作测试."""

    def test_create_then_get(self, es_client, tool) -> None:
        """测试创建后用相同ID和路由读取到原始字段."""
        store = _FakeStore()
        es_client.index.side_effect = store.index
        es_client.get.side_effect = store.get
        doc = {"name": "Alice", "age": 30}

        tool.create("users", "1", "tenant-a", doc)

        assert tool.get("users", "1", "tenant-a") == doc

    def test_create_existing_raises_conflict(self, es_client, tool) -> None:
        """测试重复创建抛出版本冲突."""
        store = _FakeStore()
        es_client.index.side_effect = store.index

        tool.create("users", "1", "", {"a": 1})
        with pytest.raises(VersionConflictError):
            tool.create("users", "1", "", {"a": 2})

    def test_create_request(self, es_client, tool) -> None:
        """测试创建请求参数."""
        tool.create("users", "1", "", {"a": 1}, refresh=RefreshPolicy.WAIT_FOR)

        es_client.index.assert_called_once_with(
            index="users",
            document={"a": 1},
            op_type="create",
            refresh="wait_for",
            id="1",
        )

    def test_get_missing_raises(self, es_client, tool) -> None:
        """测试读取不存在的文档."""
        es_client.get.side_effect = _api_error(NotFoundError, 404)

        with pytest.raises(DocumentNotFoundError):
            tool.get("users", "404")

    def test_get_uses_local_preference(self, es_client, tool) -> None:
        """测试读取优先访问本地分片."""
        es_client.get.return_value = {"found": True, "_source": {"a": 1}}

        tool.get("users", "1")

        es_client.get.assert_called_once_with(index="users", id="1", preference="_local")

    def test_mget(self, es_client, tool) -> None:
        """测试批量读取按顺序返回，不存在的文档为 None."""
        es_client.mget.return_value = {
            "docs": [
                {"_id": "1", "found": True, "_source": {"a": 1}},
                {"_id": "2", "found": False},
            ]
        }

        result = tool.mget([MgetItem("users", "1", "r1"), MgetItem("users", "2")])

        assert result == [{"a": 1}, None]
        es_client.mget.assert_called_once_with(
            docs=[
                {"_index": "users", "_id": "1", "routing": "r1"},
                {"_index": "users", "_id": "2"},
            ],
            preference="_local",
        )

    def test_mget_empty(self, es_client, tool) -> None:
        """测试空列表不发起请求."""
        assert tool.mget([]) == []
        es_client.mget.assert_not_called()

    def test_delete_with_version(self, es_client, tool) -> None:
        """测试带版本删除."""
        tool.delete_with_version("users", "1", "r1", 5)

        es_client.delete.assert_called_once_with(
            index="users",
            id="1",
            version=5,
            version_type="external",
            refresh="false",
            routing="r1",
        )

    def test_delete_with_version_conflict(self, es_client, tool) -> None:
        """测试带版本删除冲突."""
        es_client.delete.side_effect = _api_error(ConflictError, 409)

        with pytest.raises(VersionConflictError):
            tool.delete_with_version("users", "1", "", 1)

    def test_delete_by_query(self, es_client, tool) -> None:
        """测试按查询删除."""
        tool.delete_by_query("users", Q("term", status="expired"), refresh=True)

        es_client.delete_by_query.assert_called_once_with(
            index="users",
            query={"term": {"status": "expired"}},
            conflicts="proceed",
            refresh=True,
        )

    def test_delete_by_query_match_all(self, es_client, tool) -> None:
        """测试查询为空时使用 match_all."""
        tool.delete_by_query("users", None)

        kwargs = es_client.delete_by_query.call_args.kwargs
        assert kwargs["query"] == {"match_all": {}}

    def test_update(self, es_client, tool) -> None:
        """测试部分更新."""
        tool.update("users", "1", "r1", {"age": 31})

        es_client.update.assert_called_once_with(
            index="users", id="1", doc={"age": 31}, refresh="false", routing="r1"
        )

    def test_update_query(self, es_client, tool) -> None:
        """测试按查询脚本更新."""
        tool.update_query(
            "users",
            ["r1", "r2"],
            {"term": {"status": "active"}},
            "ctx._source.age += params.n",
            {"n": 1},
        )

        es_client.update_by_query.assert_called_once_with(
            index="users",
            query={"term": {"status": "active"}},
            script={
                "source": "ctx._source.age += params.n",
                "params": {"n": 1},
                "lang": "painless",
            },
            conflicts="proceed",
            refresh=False,
            routing="r1,r2",
        )

    def test_upsert_without_doc(self, es_client, tool) -> None:
        """测试不带插入文档的 UPSERT."""
        tool.upsert("users", "1", "", {"age": 31})

        kwargs = es_client.update.call_args.kwargs
        assert kwargs["doc"] == {"age": 31}
        assert kwargs["doc_as_upsert"] is True
        assert "upsert" not in kwargs

    def test_upsert_with_doc(self, es_client, tool) -> None:
        """测试带插入文档的 UPSERT."""
        tool.upsert("users", "1", "", {"age": 31}, doc={"name": "Alice", "age": 31})

        kwargs = es_client.update.call_args.kwargs
        assert kwargs["upsert"] == {"name": "Alice", "age": 31}
        assert "doc_as_upsert" not in kwargs

    def test_upsert_with_version(self, es_client, tool) -> None:
        """测试带版本整体写入."""
        tool.upsert_with_version("users", "1", "", {"a": 1}, 9, VersionType.INTERNAL)

        es_client.index.assert_called_once_with(
            index="users",
            id="1",
            document={"a": 1},
            op_type="index",
            version=9,
            version_type="internal",
            refresh="false",
        )

    def test_transport_error_translated(self, es_client, tool) -> None:
        """测试其他 API 异常转换为 DocumentOperationError."""
        from elasticsearch.exceptions import BadRequestError

        es_client.update.side_effect = _api_error(BadRequestError, 400)

        with pytest.raises(DocumentOperationError):
            tool.update("users", "1", "", {"a": 1})

    def test_timeout_uses_request_options(self, es_client, tool) -> None:
        """测试设置超时时通过 options 传递."""
        tool.delete("users", "1", timeout=2.5)

        es_client.options.assert_called_once_with(request_timeout=2.5)
        es_client.options.return_value.delete.assert_called_once()
        es_client.delete.assert_not_called()


class TestEmptyRouting:
    """空路由不设置 routing 参数."""

    @pytest.mark.parametrize(
        "method, call, args",
        [
            ("index", "create", ("users", "1", "", {"a": 1})),
            ("get", "get", ("users", "1", "")),
            ("delete", "delete", ("users", "1", "")),
            ("delete", "delete_with_version", ("users", "1", "", 1)),
            ("delete_by_query", "delete_by_query", ("users", None, "")),
            ("update", "update", ("users", "1", "", {"a": 1})),
            ("update_by_query", "update_query", ("users", [], None, "ctx._source.a = 1")),
            ("update", "upsert", ("users", "1", "", {"a": 1})),
            ("index", "upsert_with_version", ("users", "1", "", {"a": 1}, 1)),
        ],
    )
    def test_no_routing_parameter(self, es_client, tool, method, call, args) -> None:
        """测试空路由时请求中没有 routing."""
        getattr(es_client, method).return_value = {"found": True, "_source": {}}

        getattr(tool, call)(*args)

        assert "routing" not in getattr(es_client, method).call_args.kwargs


# ============================================================
# 管道操作
# ============================================================


class TestPipelineOperations:
    """管道操作测试."""

    @pytest.fixture
    def processor(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def pipeline_tool(self, es_client, processor) -> DocumentOperationTool:
        return DocumentOperationTool(es_client, processor)

    def _submitted(self, processor):
        return processor.add.call_args.args[0]

    def test_bulk_create(self, pipeline_tool, processor) -> None:
        """测试创建操作入队."""
        pipeline_tool.bulk_create("users", "1", "r1", {"a": 1})

        request = self._submitted(processor)
        assert request.action == BulkAction.CREATE
        assert request.routing == "r1"
        assert request.doc == {"a": 1}

    def test_bulk_create_with_version(self, pipeline_tool, processor) -> None:
        """测试带版本写入使用 INDEX 操作."""
        pipeline_tool.bulk_create_with_version("users", "1", "", 3, {"a": 1})

        request = self._submitted(processor)
        assert request.action == BulkAction.INDEX
        assert request.version == 3
        assert request.version_type == VersionType.EXTERNAL

    def test_bulk_delete(self, pipeline_tool, processor) -> None:
        """测试删除操作入队."""
        pipeline_tool.bulk_delete("users", "1")

        request = self._submitted(processor)
        assert request.action == BulkAction.DELETE
        assert request.version is None

    def test_bulk_delete_with_version(self, pipeline_tool, processor) -> None:
        """测试带版本删除入队."""
        pipeline_tool.bulk_delete_with_version("users", "1", "", 4, VersionType.INTERNAL)

        request = self._submitted(processor)
        assert request.version == 4
        assert request.version_type == VersionType.INTERNAL

    def test_bulk_update_and_upsert(self, pipeline_tool, processor) -> None:
        """测试更新与 UPSERT 入队."""
        pipeline_tool.bulk_update("users", "1", "", {"a": 1})
        assert self._submitted(processor).action == BulkAction.UPDATE

        pipeline_tool.bulk_upsert("users", "1", "", {"a": 1}, {"a": 1, "b": 2})
        request = self._submitted(processor)
        assert request.action == BulkAction.UPSERT
        assert request.doc == {"a": 1, "b": 2}

    def test_no_processor_raises(self, tool) -> None:
        """测试没有批量处理器时管道操作抛出异常."""
        with pytest.raises(BulkProcessorClosedError):
            tool.bulk_create("users", "1", "", {"a": 1})


# ============================================================
# 同步批量操作
# ============================================================


class TestSyncBulkOperations:
    """同步批量操作测试."""

    def test_bulk_create_docs(self, es_client, tool) -> None:
        """测试批量创建，带版本的文档使用 INDEX 操作."""
        es_client.bulk.return_value = {
            "took": 3,
            "errors": False,
            "items": [{"create": {"status": 201}}, {"index": {"status": 201}}],
        }

        result = tool.bulk_create_docs(
            "users",
            [
                BulkCreateDoc(doc_id="1", doc={"a": 1}),
                BulkCreateDoc(doc_id="2", version=8, doc={"a": 2}),
            ],
            refresh=RefreshPolicy.TRUE,
        )

        assert result.is_success()
        kwargs = es_client.bulk.call_args.kwargs
        assert kwargs["refresh"] == "true"
        assert kwargs["error_trace"] is True
        assert kwargs["operations"] == [
            {"create": {"_index": "users", "_id": "1"}},
            {"a": 1},
            {"index": {"_index": "users", "_id": "2", "version": 8, "version_type": "external"}},
            {"a": 2},
        ]

    def test_bulk_update_docs_with_item_errors(self, es_client, tool) -> None:
        """测试单项失败不抛出异常，由返回结果体现."""
        es_client.bulk.return_value = {
            "took": 3,
            "errors": True,
            "items": [
                {"update": {"_id": "1", "status": 200}},
                {
                    "update": {
                        "_id": "2",
                        "status": 404,
                        "error": {"type": "document_missing_exception", "reason": "missing"},
                    }
                },
            ],
        }

        result = tool.bulk_update_docs(
            "users",
            [BulkUpdateDoc(doc_id="1", update={"a": 1}), BulkUpdateDoc(doc_id="2", update={"a": 2})],
        )

        assert result.success == 1
        assert result.failed == 1
        assert result.errors[0].doc_id == "2"

    def test_bulk_upsert_docs(self, es_client, tool) -> None:
        """测试批量 UPSERT."""
        es_client.bulk.return_value = {"took": 1, "errors": False, "items": [{"update": {}}]}

        tool.bulk_upsert_docs("users", [BulkUpsertDoc(doc_id="1", update={"a": 1})])

        operations = es_client.bulk.call_args.kwargs["operations"]
        assert operations[1] == {"doc": {"a": 1}, "doc_as_upsert": True}

    def test_versioned_update_docs_rejected(self, es_client, tool) -> None:
        """测试批量更新描述设置 version 时拒绝且不发起请求."""
        with pytest.raises(DocumentOperationError, match="version"):
            tool.bulk_update_docs(
                "users",
                [BulkUpdateDoc(doc_id="1", update={"a": 1}), BulkUpdateDoc(doc_id="2", version=3)],
            )

        es_client.bulk.assert_not_called()

    def test_versioned_upsert_docs_rejected(self, es_client, tool) -> None:
        """测试批量 UPSERT 描述设置 version 时拒绝且不发起请求."""
        with pytest.raises(DocumentOperationError, match="version"):
            tool.bulk_upsert_docs(
                "users",
                [BulkUpsertDoc(doc_id="1", update={"a": 1}, version=2, version_type=VersionType.INTERNAL)],
            )

        es_client.bulk.assert_not_called()

    def test_empty_batch(self, es_client, tool) -> None:
        """测试空批次不发起请求."""
        result = tool.bulk_create_docs("users", [])

        assert result.is_success()
        es_client.bulk.assert_not_called()
