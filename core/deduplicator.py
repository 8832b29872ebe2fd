"""
图片去重模块（内容寻址）

以文件内容的 SHA-256 作为唯一标识，相同内容只保存一份。
"""
from pathlib import Path
from typing import TYPE_CHECKING
import hashlib
from loguru import logger

if TYPE_CHECKING:
    from core.index import ImageIndex

CHUNK_SIZE = 64 * 1024


def hash_bytes(data: bytes) -> str:
    """计算字节串的 SHA-256"""
    return hashlib.sha256(data).hexdigest()


def hash_file(file_path: Path) -> str:
    """计算文件的 SHA-256（分块读取）"""
    hasher = hashlib.sha256()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            hasher.update(chunk)
    return hasher.hexdigest()


class ImageDeduplicator:
    """图片去重器（基于持久化索引）"""

    def __init__(self, index: "ImageIndex"):
        """
        初始化去重器

        Args:
            index: 哈希索引
        """
        self.index = index
        self.stats = {
            "total_checked": 0,
            "duplicates_found": 0,
            "unique_images": 0
        }

    def is_duplicate_hash(self, content_hash: str) -> bool:
        """
        检查内容哈希是否已存在于索引

        Args:
            content_hash: SHA-256 十六进制摘要

        Returns:
            是否重复
        """
        self.stats["total_checked"] += 1
        existing = self.index.get(content_hash)
        if existing is not None:
            self.stats["duplicates_found"] += 1
            logger.debug(f"Duplicate content {content_hash[:12]} already stored at {existing.file_path}")
            return True

        self.stats["unique_images"] += 1
        return False

    def get_stats(self) -> dict:
        """获取去重统计"""
        stats = self.stats.copy()
        if stats["total_checked"] > 0:
            stats["duplicate_rate"] = stats["duplicates_found"] / stats["total_checked"]
        else:
            stats["duplicate_rate"] = 0.0
        return stats
