"""
图片哈希索引模块

持久化的「内容哈希 → CacheEntry」映射，序列化为 JSON 文档（键为十六进制摘要）。

- load(): 启动时加载一次；文件缺失、无法解析或结构不符时视为空索引，需要重建
- persist(): 先写临时文件再 os.replace，避免中途终止留下半个文件
- rebuild(): 扫描下载目录，为已有图片建立索引（接管未建索引的历史图片）
"""
from typing import Dict, Any, Iterable, Iterator, List, Optional
import json
import os
import re
from pathlib import Path
from datetime import datetime
from loguru import logger
from pydantic import ValidationError

from core.deduplicator import hash_file
from core.models import CacheEntry

# 文件名形如 4821.jpg / 4821-3.jpg
LOT_FILENAME = re.compile(r"^(\d+)(?:-(\d+))?$")


def _serialize(entries: Dict[str, CacheEntry]) -> str:
    """序列化为 JSON 字符串"""
    payload = {
        digest: entry.model_dump(mode="json", exclude={"content_hash"})
        for digest, entry in sorted(entries.items())
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _deserialize(text: str) -> Dict[str, CacheEntry]:
    """
    从 JSON 字符串反序列化

    Raises:
        ValueError: JSON 无效或结构不符
    """
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("index document must be a JSON object")
    entries = {}
    for digest, record in data.items():
        if not isinstance(record, dict):
            raise ValueError(f"index record for {digest} is not an object")
        entry = CacheEntry(content_hash=digest, **record)
        entries[entry.content_hash] = entry
    return entries


def lot_id_from_filename(file_path: Path) -> Optional[str]:
    """从文件名推断拍品号"""
    match = LOT_FILENAME.match(file_path.stem)
    return match.group(1) if match else None


class ImageIndex:
    """图片哈希索引"""

    def __init__(
        self,
        index_path: Path,
        root: Path,
        image_extensions: Iterable[str] = ("jpg", "jpeg", "png", "gif", "webp", "bmp"),
        excluded_dirs: Iterable[Path] = (),
    ):
        """
        初始化索引

        Args:
            index_path: 索引文件路径
            root: 图片输出根目录
            image_extensions: 重建时识别的图片扩展名
            excluded_dirs: 重建时跳过的目录（日志、临时目录等）
        """
        self.index_path = Path(index_path)
        self.root = Path(root)
        self.image_extensions = {f".{ext.lower().lstrip('.')}" for ext in image_extensions}
        self.excluded_dirs = [Path(d).resolve() for d in excluded_dirs]
        self._entries: Dict[str, CacheEntry] = {}
        self.dirty = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, content_hash: str) -> bool:
        return content_hash in self._entries

    def __iter__(self) -> Iterator[CacheEntry]:
        return iter(self._entries.values())

    def get(self, content_hash: str) -> Optional[CacheEntry]:
        return self._entries.get(content_hash)

    def add(self, entry: CacheEntry) -> bool:
        """
        添加记录

        Returns:
            False 表示该哈希已存在，未做任何修改
        """
        if entry.content_hash in self._entries:
            return False
        self._entries[entry.content_hash] = entry
        self.dirty = True
        return True

    # ==================== 持久化 ====================

    def load(self) -> bool:
        """
        从磁盘加载索引

        Returns:
            True 表示加载成功；False 表示文件缺失或已损坏，当前为空索引，调用方应重建
        """
        self._entries = {}
        self.dirty = False
        if not self.index_path.exists():
            logger.info("Index file not found: {}", self.index_path)
            return False
        try:
            text = self.index_path.read_text(encoding="utf-8")
            self._entries = _deserialize(text)
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.warning("Index file unreadable, falling back to rebuild: {} ({})", self.index_path, e)
            self._entries = {}
            return False
        logger.info("Loaded {} index entries from {}", len(self._entries), self.index_path)
        return True

    def persist(self):
        """写入磁盘（原子替换）"""
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.index_path.with_name(self.index_path.name + ".tmp")
        tmp_path.write_text(_serialize(self._entries), encoding="utf-8")
        os.replace(tmp_path, self.index_path)
        self.dirty = False
        logger.debug("Index persisted: {} entries -> {}", len(self._entries), self.index_path)

    # ==================== 重建 ====================

    def _is_excluded(self, file_path: Path) -> bool:
        resolved = file_path.resolve()
        if resolved == self.index_path.resolve():
            return True
        return any(excluded == resolved or excluded in resolved.parents for excluded in self.excluded_dirs)

    def iter_image_files(self) -> List[Path]:
        """列出输出目录下所有图片文件（排序，保证重建结果确定）"""
        if not self.root.exists():
            return []
        files = []
        for file_path in sorted(self.root.rglob("*")):
            if not file_path.is_file():
                continue
            if file_path.suffix.lower() not in self.image_extensions:
                continue
            if self._is_excluded(file_path):
                continue
            files.append(file_path)
        return files

    def rebuild(self) -> Dict[str, Any]:
        """
        扫描输出目录重建索引

        每个图片文件计算哈希并写入一条记录；内容相同的多个文件只保留第一个。

        Returns:
            重建统计 {files_scanned, entries, duplicates, errors}
        """
        logger.info("Rebuilding index from {}", self.root)
        self._entries = {}
        stats = {"files_scanned": 0, "entries": 0, "duplicates": 0, "errors": 0}

        for file_path in self.iter_image_files():
            stats["files_scanned"] += 1
            try:
                digest = hash_file(file_path)
                stat = file_path.stat()
            except OSError as e:
                stats["errors"] += 1
                logger.warning("Failed to hash {}: {}", file_path, e)
                continue

            entry = CacheEntry(
                content_hash=digest,
                file_path=str(file_path.resolve()),
                file_size=stat.st_size,
                date_added=datetime.fromtimestamp(stat.st_mtime),
                lot_id=lot_id_from_filename(file_path),
            )
            if self.add(entry):
                stats["entries"] += 1
            else:
                stats["duplicates"] += 1
                logger.debug("Duplicate content on disk: {} == {}", file_path, self._entries[digest].file_path)

        self.dirty = True
        logger.success("Index rebuilt: {} entries ({} duplicate files)", stats["entries"], stats["duplicates"])
        return stats

    def get_statistics(self) -> Dict[str, Any]:
        """获取统计信息"""
        lots = {entry.lot_id for entry in self._entries.values() if entry.lot_id}
        return {
            "entries": len(self._entries),
            "total_bytes": sum(entry.file_size for entry in self._entries.values()),
            "lots": len(lots),
            "index_path": str(self.index_path),
        }
