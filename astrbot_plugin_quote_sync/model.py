from dataclasses import dataclass

DEFAULT_CATEGORY = "General"
ALL_CATEGORIES = "all"
SERVER_CATEGORY = "Server"


@dataclass
class Quote:
    text: str
    category: str = DEFAULT_CATEGORY   # 同步时远端可覆盖


class QuoteError(Exception):
    """语录模块所有错误的基类"""


class ValidationError(QuoteError):
    """必填字段为空"""


class ParseError(QuoteError):
    """JSON 数据无法解析"""


class SnapshotImportError(ParseError):
    """导入的快照无效，整批不生效"""


class FetchError(QuoteError):
    """远端不可达或返回非成功状态"""


class SyncError(QuoteError):
    """同步失败，本地数据保持不变"""


class PublishError(QuoteError):
    """上报远端失败 (尽力而为，不回滚)"""


class StorageError(QuoteError):
    """写入持久化存储失败，内存数据保持不变"""
