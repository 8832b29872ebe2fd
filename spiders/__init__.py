"""
爬虫模块

包含各种爬虫类：
- BaseSpider: 爬虫基类
- LotImageSpider: 拍品图片爬虫
"""
from spiders.base import BaseSpider
from spiders.lot_spider import LotImageSpider

__all__ = [
    'BaseSpider',
    'LotImageSpider',
]
