"""
解析器模块

包含各种页面解析器：
- BaseParser: 解析器基类
- LotParser: 拍品页面解析器
"""
from parsers.base import BaseParser
from parsers.lot_parser import LotParser

__all__ = ['BaseParser', 'LotParser']
