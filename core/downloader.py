"""
图片下载器模块

只负责把图片字节取回到临时文件；去重与落盘由 DownloadCache 决定。
不做自动重试：失败即返回，由上层计数。
"""
import aiohttp
from pathlib import Path
from typing import Optional, Dict
from loguru import logger
from fake_useragent import UserAgent
from PIL import Image, UnidentifiedImageError

from config import Config, config as default_config


class DownloadError(Exception):
    """图片下载失败（HTTP 非 2xx、空响应、内容不是图片）"""


class ImageDownloader:
    """图片下载器（复用爬虫的HTTP会话）"""

    def __init__(self, session: aiohttp.ClientSession, config: Optional[Config] = None):
        self.config = (config or default_config).image
        self.crawler_config = (config or default_config).crawler
        self.ua = UserAgent()
        self.session = session
        self.download_stats = {
            "total": 0,
            "success": 0,
            "failed": 0,
        }
        logger.info("Image downloader initialized")

    def close(self):
        """会话由爬虫关闭，这里只输出统计"""
        logger.info(f"Download stats: {self.download_stats}")

    def get_headers(self, referer: Optional[str] = None) -> Dict[str, str]:
        """获取请求头"""
        if self.crawler_config.user_agent:
            user_agent = self.crawler_config.user_agent
        else:
            user_agent = self.ua.random if self.crawler_config.rotate_user_agent else self.ua.chrome
        headers = {
            "User-Agent": user_agent,
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        if referer:
            headers["Referer"] = referer
        return headers

    async def fetch_to_file(self, url: str, scratch_path: Path, referer: Optional[str] = None) -> int:
        """
        下载单张图片到临时文件

        Args:
            url: 图片绝对URL
            scratch_path: 临时文件路径
            referer: 来源页面

        Returns:
            写入的字节数

        Raises:
            DownloadError: HTTP 非 2xx、响应为空或内容校验失败
            aiohttp.ClientError / asyncio.TimeoutError / OSError: 网络或文件系统错误
        """
        self.download_stats["total"] += 1
        logger.debug(f"Downloading image: {url}")

        try:
            async with self.session.get(
                url,
                headers=self.get_headers(referer),
                allow_redirects=self.crawler_config.follow_redirects,
            ) as response:
                if not 200 <= response.status < 300:
                    raise DownloadError(f"HTTP {response.status}")
                image_data = await response.read()

            if not image_data:
                raise DownloadError("empty response body")

            scratch_path.parent.mkdir(parents=True, exist_ok=True)
            with open(scratch_path, "wb") as f:
                f.write(image_data)

            if self.config.verify_images:
                self._validate_image(scratch_path)
        except Exception:
            self.download_stats["failed"] += 1
            raise

        self.download_stats["success"] += 1
        return len(image_data)

    def _validate_image(self, file_path: Path):
        """用 Pillow 校验文件是图片（挡住返回 200 的 HTML 错误页）"""
        try:
            with Image.open(file_path) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise DownloadError(f"not a valid image: {e}") from e

    def get_stats(self) -> Dict[str, int]:
        """获取下载统计"""
        return self.download_stats.copy()
