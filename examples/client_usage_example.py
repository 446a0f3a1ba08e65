"""ElasticLink 使用示例.

本文件展示了如何通过 ConnectionManager 创建客户端，并使用批量管道、
索引缓存、文档操作和滚动遍历。
"""

import threading

from elasticsearch.dsl import Q

from elasticlink import ClientOptions, ConnectionManager, QueryOptions
from elasticlink.bulk import BulkConfig, BulkCreateDoc
from elasticlink.constants import DEFAULT_CLIENT

manager = ConnectionManager()


def on_batch_done(execution_id, requests, response, error):
    """批次完成回调."""
    if error is not None:
        print(f"批次 {execution_id} 失败: {error}")
    elif response and response.get("errors"):
        print(f"批次 {execution_id} 存在失败项")
    else:
        print(f"批次 {execution_id} 成功提交 {len(requests)} 个操作")


# ==================== 示例1：创建客户端 ====================
def example_init_client():
    """使用自定义配置创建默认客户端."""
    options = ClientOptions(
        query_log_enable=True,
        global_slow_query_ms=500,
        bulk=BulkConfig(workers=2, bulk_actions=1000, flush_interval=2, after=on_batch_done),
    )
    return manager.init_client_with_options(
        DEFAULT_CLIENT,
        ["http://localhost:9200"],
        "elastic",
        "changeme",
        options,
    )


# ==================== 示例2：建索引与写入 ====================
def example_write(client):
    """建索引后通过批量管道和同步批量接口写入文档."""
    client.indices.create_index(
        "users",
        {"mappings": {"properties": {"name": {"type": "keyword"}, "age": {"type": "integer"}}}},
        force_check=True,
    )

    # 管道写入，结果通过回调获得
    for i in range(10):
        client.docs.bulk_create("users", str(i), "", {"name": f"user-{i}", "age": 20 + i})
    client.flush()

    # 同步批量写入，直接返回结果
    result = client.docs.bulk_create_docs(
        "users",
        [BulkCreateDoc(doc_id="100", doc={"name": "Alice", "age": 30})],
    )
    if not result.is_success():
        print(result.get_error_summary())


# ==================== 示例3：查询与滚动遍历 ====================
def example_query(client):
    """分页查询和滚动遍历."""
    res = client.queries.query(
        "users",
        [],
        Q("range", age={"gte": 25}),
        0,
        10,
        QueryOptions(orders=[{"age": False}], include_fields=["name"]),
    )
    print(f"命中 {res['hits']['total']['value']} 条")

    stop = threading.Event()
    names = []

    def collect(response, error):
        if error is not None:
            print(f"滚动遍历失败: {error}")
            return False
        names.extend(hit["_source"]["name"] for hit in response["hits"]["hits"])

    client.queries.scroll_query(["users"], None, 100, [], collect, cancel_event=stop)
    print(f"共遍历 {len(names)} 个文档")


if __name__ == "__main__":
    try:
        es = example_init_client()
        example_write(es)
        example_query(es)
    finally:
        manager.close_all()
