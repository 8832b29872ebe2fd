"""
核心模块

包含基础组件：
- downloader: 图片下载器
- index: 内容哈希索引
- deduplicator: 图片去重器（SHA-256）
- cache: 内容寻址下载缓存
- stats: 运行统计
- inputs: CSV 输入
"""
from .downloader import ImageDownloader, DownloadError
from .index import ImageIndex
from .deduplicator import ImageDeduplicator
from .cache import DownloadCache
from .stats import RunStatistics
from .inputs import InputError, read_urls

__all__ = [
    'ImageDownloader',
    'DownloadError',
    'ImageIndex',
    'ImageDeduplicator',
    'DownloadCache',
    'RunStatistics',
    'InputError',
    'read_urls',
]
