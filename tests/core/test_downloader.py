"""
ImageDownloader 单元测试（mock aiohttp）
"""
import io
import unittest
import asyncio
import tempfile
import shutil
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from PIL import Image

from config import Config
from core.downloader import ImageDownloader, DownloadError


def _png_bytes(color="red"):
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=color).save(buf, "PNG")
    return buf.getvalue()


def _response(status=200, body=b""):
    resp = MagicMock()
    resp.status = status
    resp.read = AsyncMock(return_value=body)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=None)
    return resp


def _config():
    cfg = Config()
    cfg.crawler.user_agent = "test-agent"
    return cfg


class TestImageDownloaderGetHeaders(unittest.TestCase):
    """get_headers 测试"""

    def test_configured_user_agent_and_referer(self):
        """配置了固定UA时使用它，并带上 Referer"""
        d = ImageDownloader(session=MagicMock(), config=_config())
        headers = d.get_headers(referer="https://auction.example.com/lot/1")
        self.assertEqual(headers["User-Agent"], "test-agent")
        self.assertEqual(headers["Referer"], "https://auction.example.com/lot/1")
        self.assertIn("image/", headers["Accept"])

    def test_no_referer_header_when_missing(self):
        d = ImageDownloader(session=MagicMock(), config=_config())
        self.assertNotIn("Referer", d.get_headers())


class TestImageDownloaderFetchToFile(unittest.TestCase):
    """fetch_to_file 测试（mock 响应为异步上下文管理器）"""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.scratch = Path(self.tmp) / "scratch" / "x.part"

    def tearDown(self):
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _downloader(self, resp, verify=True):
        cfg = _config()
        cfg.image.verify_images = verify
        session = MagicMock()
        session.get.return_value = resp
        return ImageDownloader(session=session, config=cfg)

    def test_success_writes_scratch_file(self):
        """下载成功：写入临时文件并计数"""
        body = _png_bytes()
        d = self._downloader(_response(200, body))
        size = asyncio.run(d.fetch_to_file("https://cdn.example.com/images/1.jpg", self.scratch))
        self.assertEqual(size, len(body))
        self.assertEqual(self.scratch.read_bytes(), body)
        self.assertEqual(d.get_stats(), {"total": 1, "success": 1, "failed": 0})

    def test_http_error_raises(self):
        """HTTP 404 抛出 DownloadError，不写文件"""
        d = self._downloader(_response(404))
        with self.assertRaises(DownloadError):
            asyncio.run(d.fetch_to_file("https://cdn.example.com/images/404.jpg", self.scratch))
        self.assertFalse(self.scratch.exists())
        self.assertEqual(d.get_stats()["failed"], 1)

    def test_empty_body_raises(self):
        d = self._downloader(_response(200, b""))
        with self.assertRaises(DownloadError):
            asyncio.run(d.fetch_to_file("https://cdn.example.com/images/empty.jpg", self.scratch))

    def test_html_error_page_fails_verification(self):
        """返回 200 的 HTML 错误页不能通过 Pillow 校验"""
        d = self._downloader(_response(200, b"<html>Not found</html>"))
        with self.assertRaises(DownloadError):
            asyncio.run(d.fetch_to_file("https://cdn.example.com/images/soft404.jpg", self.scratch))

    def test_verification_disabled_accepts_any_bytes(self):
        d = self._downloader(_response(200, b"raw-bytes"), verify=False)
        size = asyncio.run(d.fetch_to_file("https://cdn.example.com/images/raw.jpg", self.scratch))
        self.assertEqual(size, len(b"raw-bytes"))

    def test_network_exception_propagates(self):
        """网络异常原样抛出，由缓存层记为失败"""
        session = MagicMock()
        session.get.side_effect = OSError("network error")
        d = ImageDownloader(session=session, config=_config())
        with self.assertRaises(OSError):
            asyncio.run(d.fetch_to_file("https://cdn.example.com/images/x.jpg", self.scratch))
        self.assertEqual(d.get_stats()["failed"], 1)

    def test_close_does_not_close_shared_session(self):
        """会话属于爬虫，close 只输出统计"""
        session = MagicMock()
        session.close = AsyncMock(return_value=None)
        d = ImageDownloader(session=session, config=_config())
        d.close()
        session.close.assert_not_called()
