"""
内容寻址下载缓存

单张图片的处理流程：

    PENDING → 解析URL → FETCHING → HASHABLE | FETCH_FAILED
    HASHABLE → KNOWN_DUPLICATE（丢弃临时文件）→ SKIPPED
             → NEW_CONTENT（移动到目标路径，写入索引）→ STORED
    FETCH_FAILED → FAILED（本次运行不再重试）

同一内容在输出目录中最多保存一份；目标文件已存在时不发起网络请求。
"""
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from config import Config, config as default_config
from core.deduplicator import ImageDeduplicator, hash_file
from core.downloader import ImageDownloader
from core.index import ImageIndex
from core.models import CacheEntry, FetchResult, FetchStatus
from core.urls import resolve_url


class DownloadCache:
    """内容寻址下载缓存"""

    def __init__(
        self,
        index: ImageIndex,
        downloader: ImageDownloader,
        config: Optional[Config] = None,
    ):
        """
        Args:
            index: 已加载（或已重建）的哈希索引
            downloader: 图片下载器
            config: 配置对象
        """
        self.config = config or default_config
        self.index = index
        self.downloader = downloader
        self.deduplicator = ImageDeduplicator(index)
        self.temp_dir = self.config.image.temp_dir
        self.checkpoint_interval = max(1, self.config.image.checkpoint_interval)
        self._stores_since_checkpoint = 0

    @property
    def dedup_enabled(self) -> bool:
        return self.config.image.enable_deduplication

    @staticmethod
    def resolve(candidate: str, base_url: str) -> str:
        """相对URL → 绝对URL"""
        return resolve_url(candidate, base_url)

    async def fetch_and_store(
        self,
        url: str,
        destination: Path,
        lot_id: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> FetchResult:
        """
        下载图片并按内容去重后落盘

        Args:
            url: 图片绝对URL
            destination: 目标文件路径
            lot_id: 拍品号（写入索引）
            referer: 来源页面URL

        Returns:
            FetchResult，status 为 STORED / SKIPPED / FAILED
        """
        destination = Path(destination)

        if destination.exists() and self.dedup_enabled:
            logger.debug(f"Already on disk, skipping: {destination.name}")
            return FetchResult(
                status=FetchStatus.SKIPPED, url=url, destination=str(destination), reason="exists"
            )

        scratch_path: Optional[Path] = None
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            fd, scratch_name = tempfile.mkstemp(dir=self.temp_dir, suffix=".part")
            os.close(fd)
            scratch_path = Path(scratch_name)

            size = await self.downloader.fetch_to_file(url, scratch_path, referer=referer)
            content_hash = hash_file(scratch_path)

            if self.dedup_enabled and self.deduplicator.is_duplicate_hash(content_hash):
                logger.info(f"Duplicate content skipped: {url} (lot {lot_id})")
                return FetchResult(
                    status=FetchStatus.SKIPPED,
                    url=url,
                    destination=str(destination),
                    reason="duplicate",
                    content_hash=content_hash,
                    bytes_fetched=size,
                )

            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(scratch_path), str(destination))
        except Exception as e:
            logger.error(f"Failed to fetch image {url} (lot {lot_id}): {e}")
            return FetchResult(
                status=FetchStatus.FAILED,
                url=url,
                destination=str(destination),
                reason="fetch_failed",
                error=str(e),
            )
        finally:
            if scratch_path is not None:
                scratch_path.unlink(missing_ok=True)

        added = self.index.add(
            CacheEntry(
                content_hash=content_hash,
                file_path=str(destination.resolve()),
                file_size=size,
                date_added=datetime.now(),
                lot_id=lot_id,
                source_url=url,
            )
        )
        if added:
            self._stores_since_checkpoint += 1
            if self._stores_since_checkpoint >= self.checkpoint_interval:
                self.checkpoint()

        logger.success(f"Stored: {destination.name} ({size} bytes)")
        return FetchResult(
            status=FetchStatus.STORED,
            url=url,
            destination=str(destination),
            content_hash=content_hash,
            bytes_fetched=size,
        )

    def checkpoint(self) -> bool:
        """
        把索引写入磁盘

        写入失败只记录错误，索引保持 dirty，下一次检查点或 close() 会再次写入。

        Returns:
            是否写入成功
        """
        try:
            self.index.persist()
        except OSError as e:
            logger.error(f"Index checkpoint failed ({self.index.index_path}): {e}")
            return False
        self._stores_since_checkpoint = 0
        logger.debug(f"Index checkpoint written ({len(self.index)} entries)")
        return True

    def close(self) -> bool:
        """运行结束（包括提前终止）时调用，确保所有已接受的下载都写入索引"""
        if self.index.dirty:
            return self.checkpoint()
        return True

    def get_stats(self) -> Dict[str, Any]:
        """去重统计（供爬虫汇总）"""
        return self.deduplicator.get_stats()
