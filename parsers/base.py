"""
解析器基类模块

包含解析器的抽象基类：
- BaseParser: 解析器基类
"""
import re
from abc import ABC
from typing import List, Optional, Pattern, Sequence, Union
from urllib.parse import urlparse
from bs4 import BeautifulSoup

PatternLike = Union[str, Pattern]


class BaseParser(ABC):
    """
    解析器基类

    所有解析器的公共基类，提供：
    - 基础HTML解析
    - 按顺序匹配的ID提取
    - 图片URL校验
    """

    IMAGE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'gif', 'bmp', 'webp')

    def __init__(self, parser_config=None):
        """
        初始化解析器

        Args:
            parser_config: 配置对象，可选
        """
        self._config = parser_config

    @staticmethod
    def _soup(html: str) -> BeautifulSoup:
        """容错解析（html.parser 可处理残缺的HTML）"""
        return BeautifulSoup(html or "", "html.parser")

    def _extract_id(self, text: str, patterns: Sequence[PatternLike]) -> Optional[str]:
        """
        按顺序尝试正则，第一个命中的生效

        Args:
            text: 待匹配文本（HTML或URL）
            patterns: 正则表达式列表（顺序即优先级）

        Returns:
            第一个非空分组的内容，全部未命中返回None
        """
        if not text:
            return None
        for pattern in patterns:
            match = re.search(pattern, text) if isinstance(pattern, str) else pattern.search(text)
            if match:
                # 带多个可选分组的规则只会命中其中一个
                value = next((group for group in match.groups() if group), None)
                if value:
                    return value
        return None

    def _has_image_extension(self, url: str, allowed_formats: Optional[List[str]] = None) -> bool:
        """URL路径是否以图片扩展名结尾（忽略查询串）"""
        if not url or not isinstance(url, str):
            return False
        path = urlparse(url).path.lower()
        image_extensions = allowed_formats or self.IMAGE_EXTENSIONS
        return any(path.endswith(f'.{ext}') for ext in image_extensions)

    def _is_valid_image_url(self, url: str, allowed_formats: Optional[List[str]] = None) -> bool:
        """
        验证图片URL是否有效

        Args:
            url: 图片URL
            allowed_formats: 允许的图片格式列表

        Returns:
            URL是否有效
        """
        if not url or not isinstance(url, str):
            return False

        # 检查是否是有效的URL
        result = urlparse(url)
        if not result.scheme or not result.netloc:
            return False

        return self._has_image_extension(url, allowed_formats)
