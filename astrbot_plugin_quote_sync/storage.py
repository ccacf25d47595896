from pathlib import Path
from typing import Dict, Optional

QUOTES_KEY = "quotes"
FILTER_KEY = "lastFilter"


class FileStorage:
    """持久化键值存储：每个键对应数据目录下的一个文件"""

    FILENAMES = {
        QUOTES_KEY: "quotes.json",
        FILTER_KEY: "last_filter.txt",
    }

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.data_dir / self.FILENAMES.get(key, f"{key}.dat")

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def set(self, key: str, value: bytes):
        # 先写同目录临时文件再替换，中途崩溃不会留下半截文件
        path = self._path(key)
        tmp = path.with_name(f"{path.name}.tmp")
        tmp.write_bytes(value)
        tmp.replace(path)


class MemoryStorage:
    """内存存储，进程退出即丢失"""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes):
        self._data[key] = value
