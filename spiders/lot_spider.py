"""
拍品图片爬虫

逐个处理输入URL（串行）：获取页面 → 提取拍品号和图片 → 逐张 fetch_and_store → 累加统计。
页面之间有固定延迟；索引在运行结束（包括异常退出）时一定会写盘。
"""
import asyncio
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from tqdm import tqdm

from config import Config, config as default_config
from core.cache import DownloadCache
from core.downloader import ImageDownloader
from core.index import ImageIndex
from core.models import CandidateImage
from core.stats import RunStatistics
from core.urls import image_filename, url_extension
from parsers.lot_parser import LotParser
from spiders.base import BaseSpider


class LotImageSpider(BaseSpider):
    """
    拍品图片爬虫

    Example:
        async with LotImageSpider(config) as spider:
            stats = await spider.run(urls)
    """

    def __init__(self, config: Optional[Config] = None):
        super().__init__(config or default_config)
        image_config = self.config.image
        self.parser = LotParser(self.config)
        self.index = ImageIndex(
            index_path=image_config.index_path,
            root=image_config.download_dir,
            image_extensions=image_config.allowed_formats,
            excluded_dirs=[image_config.temp_dir, self.config.log.log_dir],
        )
        self.downloader: Optional[ImageDownloader] = None
        self.cache: Optional[DownloadCache] = None
        self.run_stats = RunStatistics()

        logger.info(f"🚀 初始化拍品图片爬虫: 输出目录 {image_config.download_dir}")

    async def init(self):
        """初始化：HTTP会话、目录、索引、下载缓存"""
        await super().init()
        self.config.create_directories()
        self.prepare_index()
        self.downloader = ImageDownloader(session=self.session, config=self.config)
        self.cache = DownloadCache(self.index, self.downloader, self.config)
        logger.success("✅ 爬虫初始化完成")

    def prepare_index(self) -> bool:
        """
        加载索引；索引缺失/损坏或要求强制重建时扫描输出目录重建

        Returns:
            是否执行了重建
        """
        loaded = self.index.load()
        if loaded and not self.config.image.rebuild_index:
            return False
        if not loaded:
            logger.warning("⚠️  索引不可用，开始从输出目录重建")
        self.index.rebuild()
        self.index.persist()
        return True

    async def close(self):
        """关闭：先写索引，再关闭会话"""
        if self.cache and not self.cache.close():
            logger.error(f"❌ 索引写入失败: {self.index.index_path}")
        if self.downloader:
            self.downloader.close()
        await super().close()

    def extract_images(self, html: str, url: str) -> List[CandidateImage]:
        """严格模式优先；没有结果时按配置回退到宽松模式"""
        strict = self.parser.choose_strict(url)
        images = self.parser.extract_candidate_images(html, strict=strict, base_url=url)
        if strict and not images and self.config.extraction.permissive_fallback:
            logger.info(f"ℹ️  主图容器无结果，改用宽松模式: {url}")
            images = self.parser.extract_candidate_images(html, strict=False, base_url=url)
        return images

    async def process_url(self, url: str, next_fallback: int) -> Tuple[RunStatistics, int]:
        """
        处理单个页面

        Args:
            url: 页面URL
            next_fallback: 下一个可用的回退拍品号

        Returns:
            (本页统计增量, 更新后的回退拍品号)
        """
        delta = RunStatistics()

        html = await self.fetch_page(url)
        if html is None:
            delta.urls_failed += 1
            logger.error(f"❌ 页面处理失败: {url}")
            return delta, next_fallback
        delta.urls_processed += 1

        lot_id = self.parser.extract_lot_identifier(html, url)
        if lot_id is None:
            lot_id = str(next_fallback)
            next_fallback += 1
            logger.warning(f"⚠️  未识别到拍品号，使用回退编号 {lot_id}: {url}")
        delta.lots.add(lot_id)

        images = self.extract_images(html, url)
        limit = self.config.image.max_images_per_page
        if limit > 0:
            images = images[:limit]
        delta.images_found += len(images)
        logger.info(f"🖼️  拍品 {lot_id}: 发现 {len(images)} 张图片")

        image_config = self.config.image
        for position, candidate in enumerate(images, 1):
            image_url = self.cache.resolve(candidate.raw_url, url)
            extension = url_extension(image_url, image_config.allowed_formats, image_config.default_extension)
            destination = image_config.download_dir / image_filename(lot_id, position, extension)
            result = await self.cache.fetch_and_store(image_url, destination, lot_id=lot_id, referer=url)
            delta.record_image(result)

        return delta, next_fallback

    async def run(self, urls: List[str]) -> RunStatistics:
        """
        依次处理所有URL

        Args:
            urls: 页面URL列表

        Returns:
            本次运行的累计统计
        """
        next_fallback = self.config.extraction.fallback_lot_start
        for position, url in enumerate(tqdm(urls, desc="🔍 处理拍品", unit="url")):
            if position > 0:
                await asyncio.sleep(self.config.crawler.download_delay)
            delta, next_fallback = await self.process_url(url, next_fallback)
            self.run_stats.merge(delta)
        return self.run_stats

    def get_statistics(self) -> Dict[str, Any]:
        """获取统计信息"""
        stats = dict(self.stats)
        stats.update(self.run_stats.to_dict())
        stats["index_entries"] = len(self.index)
        if self.downloader:
            stats["download"] = self.downloader.get_stats()
        if self.cache:
            stats["dedup"] = self.cache.get_stats()
        return stats
