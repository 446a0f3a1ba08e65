"""elasticlink 类型定义模块."""

from typing import Any, Dict, List, Union

from elasticsearch.dsl.query import Query

# 文档源数据类型
DocumentDict = Dict[str, Any]

# 部分更新字段类型
UpdateDict = Dict[str, Any]

# 查询条件类型：elasticsearch.dsl 的 Query 对象或原始 DSL 字典
QueryType = Union[Query, Dict[str, Any], None]

# 排序类型
# 格式: [{字段名: 是否升序}, ...]
OrderList = List[Dict[str, bool]]
