"""elasticlink 常量定义模块."""

# 预留的客户端名称
DEFAULT_CLIENT = "es-default-client"
DEFAULT_READ_CLIENT = "es-default-read-client"
DEFAULT_WRITE_CLIENT = "es-default-write-client"
SIMPLE_CLIENT = "simple-es-client"

# 查询默认优先访问本地分片
DEFAULT_PREFERENCE = "_local"

# update_by_query 脚本语言
DEFAULT_SCRIPT_LANG = "painless"

# scroll 上下文保活时间
DEFAULT_SCROLL_KEEPALIVE = "1m"

# 启动时健康检查超时（秒）
STARTUP_HEALTHCHECK_TIMEOUT = 15
