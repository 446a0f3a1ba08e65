"""批量管道数据模型单元测试."""

import threading
import unittest

from elasticlink.bulk import (
    BulkAction,
    BulkConfig,
    BulkRequest,
    BulkResult,
    VersionType,
    normalize_bulk_config,
)
from elasticlink.bulk.models import MAX_BULK_ACTIONS, MAX_BULK_SIZE, MAX_FLUSH_INTERVAL, MIB
from elasticlink.bulk.tool import default_after_callback


class TestBulkRequest(unittest.TestCase):
    """BulkRequest 转换测试."""

    def test_index_action(self):
        """测试 INDEX 操作."""
        request = BulkRequest(
            action=BulkAction.INDEX,
            index_name="users",
            doc_id="1",
            routing="tenant-a",
            doc={"name": "Alice"},
        )

        action = request.to_action()

        self.assertEqual(action["_op_type"], "index")
        self.assertEqual(action["_index"], "users")
        self.assertEqual(action["_id"], "1")
        self.assertEqual(action["_routing"], "tenant-a")
        self.assertEqual(action["_source"], {"name": "Alice"})
        self.assertNotIn("_version", action)

    def test_empty_routing_and_id_omitted(self):
        """测试空路由和空ID不出现在操作中."""
        request = BulkRequest(action=BulkAction.CREATE, index_name="users", doc={"a": 1})

        action = request.to_action()

        self.assertNotIn("_routing", action)
        self.assertNotIn("_id", action)
        header = request.to_lines()[0]
        self.assertEqual(header, {"create": {"_index": "users"}})

    def test_version_fields(self):
        """测试带版本号的操作."""
        request = BulkRequest(
            action=BulkAction.INDEX,
            index_name="users",
            doc_id="1",
            version=7,
            version_type=VersionType.EXTERNAL,
            doc={"a": 1},
        )

        header, payload = request.to_lines()

        self.assertEqual(header["index"]["version"], 7)
        self.assertEqual(header["index"]["version_type"], "external")
        self.assertEqual(payload, {"a": 1})

    def test_update_action(self):
        """测试 UPDATE 操作."""
        request = BulkRequest(
            action=BulkAction.UPDATE,
            index_name="users",
            doc_id="1",
            update={"age": 30},
        )

        header, payload = request.to_lines()

        self.assertIn("update", header)
        self.assertEqual(payload, {"doc": {"age": 30}})

    def test_upsert_without_doc(self):
        """测试不带插入文档的 UPSERT 使用 doc_as_upsert."""
        request = BulkRequest(
            action=BulkAction.UPSERT,
            index_name="users",
            doc_id="1",
            update={"age": 30},
        )

        header, payload = request.to_lines()

        self.assertIn("update", header)
        self.assertEqual(payload, {"doc": {"age": 30}, "doc_as_upsert": True})

    def test_upsert_with_doc(self):
        """测试带插入文档的 UPSERT."""
        request = BulkRequest(
            action=BulkAction.UPSERT,
            index_name="users",
            doc_id="1",
            update={"age": 30},
            doc={"name": "Alice", "age": 30},
        )

        _, payload = request.to_lines()

        self.assertEqual(payload["upsert"], {"name": "Alice", "age": 30})
        self.assertNotIn("doc_as_upsert", payload)

    def test_delete_has_no_payload(self):
        """测试 DELETE 操作只有动作行."""
        request = BulkRequest(action=BulkAction.DELETE, index_name="users", doc_id="1")

        lines = request.to_lines()

        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0], {"delete": {"_index": "users", "_id": "1"}})

    def test_estimated_size(self):
        """测试请求体大小估算."""
        small = BulkRequest(action=BulkAction.INDEX, index_name="i", doc={"a": 1})
        large = BulkRequest(action=BulkAction.INDEX, index_name="i", doc={"a": "x" * 1000})

        self.assertGreater(small.estimated_size(), 0)
        self.assertGreater(large.estimated_size(), small.estimated_size() + 900)


class TestNormalizeBulkConfig(unittest.TestCase):
    """批量配置修正测试."""

    def test_defaults(self):
        """测试默认配置."""
        config = normalize_bulk_config(None, "client-a")

        self.assertEqual(config.name, "client-a")
        self.assertEqual(config.workers, 3)
        self.assertEqual(config.bulk_actions, 500)
        self.assertEqual(config.bulk_size, 5 * MIB)
        self.assertEqual(config.flush_interval, 1.0)
        self.assertIs(config.after, default_after_callback)
        self.assertIsInstance(config.cancel_event, threading.Event)

    def test_values_are_clamped(self):
        """测试超出上限的参数被修正而不是拒绝."""
        original = BulkConfig(
            workers=0,
            bulk_actions=20000,
            bulk_size=200 * MIB,
            flush_interval=120,
        )

        with self.assertLogs("elasticlink.bulk.tool", level="WARNING") as logs:
            config = normalize_bulk_config(original)

        self.assertEqual(config.workers, 1)
        self.assertEqual(config.bulk_actions, MAX_BULK_ACTIONS)
        self.assertEqual(config.bulk_size, MAX_BULK_SIZE)
        self.assertEqual(config.flush_interval, MAX_FLUSH_INTERVAL)
        self.assertEqual(len(logs.records), 4)
        # 原配置不被修改
        self.assertEqual(original.bulk_actions, 20000)
        self.assertIsNone(original.after)

    def test_boundary_values(self):
        """测试恰好等于上限的参数."""
        config = normalize_bulk_config(
            BulkConfig(bulk_actions=10000, bulk_size=100 * MIB, flush_interval=60)
        )

        self.assertEqual(config.bulk_actions, 10000)
        self.assertEqual(config.bulk_size, 100 * MIB)
        self.assertEqual(config.flush_interval, 60)

    def test_explicit_name_kept(self):
        """测试显式指定的名称不被覆盖."""
        config = normalize_bulk_config(BulkConfig(name="writer"), "client-a")

        self.assertEqual(config.name, "writer")


class TestBulkResult(unittest.TestCase):
    """BulkResult 解析测试."""

    def test_from_response_with_errors(self):
        """测试解析包含失败项的响应."""
        response = {
            "took": 12,
            "errors": True,
            "items": [
                {"index": {"_index": "users", "_id": "1", "status": 201}},
                {
                    "create": {
                        "_index": "users",
                        "_id": "2",
                        "status": 409,
                        "error": {
                            "type": "version_conflict_engine_exception",
                            "reason": "document already exists",
                        },
                    }
                },
            ],
        }

        result = BulkResult.from_response(response)

        self.assertEqual(result.took, 12)
        self.assertTrue(result.has_errors)
        self.assertEqual(result.success, 1)
        self.assertEqual(result.failed, 1)
        self.assertFalse(result.is_success())
        error = result.errors[0]
        self.assertEqual(error.doc_id, "2")
        self.assertEqual(error.status, 409)
        self.assertEqual(error.operation, "create")
        self.assertIn("document already exists", result.get_error_summary())

    def test_from_response_all_success(self):
        """测试全部成功的响应."""
        result = BulkResult.from_response(
            {"took": 1, "errors": False, "items": [{"delete": {"_id": "1", "status": 200}}]}
        )

        self.assertTrue(result.is_success())
        self.assertEqual(result.get_error_summary(), "No errors")


class TestDefaultAfterCallback(unittest.TestCase):
    """默认完成回调测试."""

    def test_logs_on_error(self):
        """测试批次失败时记录错误日志."""
        with self.assertLogs("elasticlink.bulk.tool", level="ERROR") as logs:
            default_after_callback(3, [], None, RuntimeError("boom"))

        self.assertIn("executionId: 3", logs.output[0])
        self.assertIn("boom", logs.output[0])

    def test_logs_on_item_errors(self):
        """测试响应存在失败项时记录错误日志."""
        with self.assertLogs("elasticlink.bulk.tool", level="ERROR"):
            default_after_callback(1, [], {"errors": True, "items": []}, None)

    def test_silent_on_success(self):
        """测试全部成功时不记录日志."""
        with self.assertNoLogs("elasticlink.bulk.tool", level="ERROR"):
            default_after_callback(1, [], {"errors": False, "items": []}, None)
