"""
拍品页面解析器

从原始HTML中提取：
- 拍品号（LotIdentifier）：按顺序尝试多组正则，先精确后宽泛，第一个命中即生效
- 拍品图片（CandidateImage）：严格模式只看主图容器，宽松模式扫描整页 <img>

提取结果按去掉查询串后的URL分组去重，同组保留 w= 宽度最大的版本。
"""
import json
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag
from loguru import logger

from config import Config, config as default_config
from core.models import CandidateImage
from core.urls import resolve_url, strip_query, width_hint
from parsers.base import BaseParser

# 顺序即优先级：页面里往往有多个数字，越靠前的规则越可信
LOT_HTML_PATTERNS = [
    # 1. 明确的拍品号标记
    re.compile(r'data-lot-?(?:number|num|no)\s*=\s*["\']\s*#?\s*([A-Za-z0-9-]+)', re.I),
    re.compile(
        r'<[^>]+(?:class|id)\s*=\s*["\'][^"\']*\blot[-_]?(?:number|num|no)\b[^"\']*["\'][^>]*>'
        r'\s*(?:<[^>]+>\s*)*(?:Lot\b\s*)?(?:#|No\.?|Number\s*:?)?\s*(\d+[A-Za-z]?)',
        re.I,
    ),
    # 2. 结构化数据字段
    re.compile(r'"lot_?(?:number|num|no)"\s*:\s*(?:"\s*([A-Za-z0-9-]+)\s*"|(\d+))', re.I),
    re.compile(r'itemprop\s*=\s*["\']lotNumber["\'][^>]*content\s*=\s*["\']\s*([A-Za-z0-9-]+)', re.I),
    # 3. 通用文本 Lot #N
    re.compile(r'\bLot\s*(?:#|No\.?|Number\s*:?|:)?\s*(\d+)\b', re.I),
]

LOT_URL_PATTERNS = [
    re.compile(r'[?&](?:lot|lot_?id|lot_?number|lot_?no)=(\d+)', re.I),
    re.compile(r'/lots?/(\d+)', re.I),
    re.compile(r'lot[-_](\d+)', re.I),
    re.compile(r'[?&](?:item|item_?id|id)=(\d+)', re.I),
    re.compile(r'/(?:items?|products?|catalog)/(\d+)', re.I),
    re.compile(r'(\d{3,})'),
]

# 装饰性素材（图标、logo、缩略图等），按完整单词匹配，避免误伤 silicone 之类的词
DECORATIVE_MARKERS = re.compile(
    r'(?<![a-z])(?:icons?|logos?|banners?|buttons?|btn|sprites?|placeholder|spinner|loading|loader|'
    r'avatars?|favicon|thumbs?|thumbnails?|badges?|pixel|tracking|1x1|spacer)(?![a-z])'
)
THUMBNAIL_QUERY = re.compile(
    r'(?:^|&)(?:w|width|h|height)=\d{1,2}(?:&|$)'
    r'|(?:^|&)(?:size|variant)=(?:thumb|thumbnail|small|tiny|icon|xs)(?:&|$)',
    re.I,
)

# 严格模式下图片必须位于这些路径段之下
EXPECTED_PATH_SEGMENTS = {
    "lots", "lot", "items", "item", "products", "product",
    "images", "image", "gallery", "uploads", "upload", "photos",
}

# 严格模式下从元素上取URL的属性（按顺序）
DATA_ATTRIBUTE_MARKERS = ("large", "full", "zoom", "original")
LAZY_IMG_ATTRIBUTES = ("src", "data-src", "data-lazy", "data-lazy-src")
STRUCTURED_DATA_TYPES = {"product", "offer", "individualproduct", "productmodel", "aggregateoffer"}


class LotParser(BaseParser):
    """
    拍品页面解析器

    Example:
        parser = LotParser(config)
        lot_id = parser.extract_lot_identifier(html, url)
        images = parser.extract_candidate_images(html, strict=True, base_url=url)
    """

    def __init__(self, config: Optional[Config] = None):
        super().__init__(config or default_config)
        self.extraction = self._config.extraction
        self.allowed_formats = self._config.image.allowed_formats

    # ==================== 拍品号 ====================

    def extract_lot_identifier(self, html: str, url: str) -> Optional[str]:
        """
        提取拍品号

        先按顺序匹配HTML，再从URL路径/查询串中取数字。

        Args:
            html: 页面HTML（可以是残缺的）
            url: 页面URL

        Returns:
            拍品号；找不到返回None（不是错误，由调用方分配回退编号）
        """
        lot_id = self._extract_id(html, LOT_HTML_PATTERNS)
        if lot_id:
            return lot_id

        if url:
            parsed = urlparse(url)
            target = parsed.path + (f"?{parsed.query}" if parsed.query else "")
            lot_id = self._extract_id(target, LOT_URL_PATTERNS)
            if lot_id:
                logger.debug(f"Lot id {lot_id} taken from URL {url}")
                return lot_id
        return None

    # ==================== 图片 ====================

    def is_strict_host(self, url: str) -> bool:
        """页面域名是否属于已知的拍卖平台模板"""
        host = urlparse(url).netloc.lower()
        return any(marker.lower() in host for marker in self.extraction.strict_hosts)

    def choose_strict(self, url: str) -> bool:
        """配置强制指定时按配置，否则按域名判断"""
        if self.extraction.strict_mode is not None:
            return self.extraction.strict_mode
        return self.is_strict_host(url)

    def extract_candidate_images(
        self, html: str, strict: bool, base_url: Optional[str] = None
    ) -> List[CandidateImage]:
        """
        提取候选图片

        Args:
            html: 页面HTML
            strict: True 为严格模式（仅主图容器，失败时回退结构化数据）
            base_url: 页面URL，用于把相对地址解析为绝对地址

        Returns:
            去重后的候选图片列表（保持首次出现的顺序）
        """
        soup = self._soup(html)
        if strict:
            urls = self._strict_image_urls(soup, base_url)
        else:
            urls = self._permissive_image_urls(soup, base_url)
        return self.dedupe_candidates(urls)

    def dedupe_candidates(self, urls: Iterable[str]) -> List[CandidateImage]:
        """
        按去掉查询串的URL分组，同组保留宽度提示最大的版本

        没有宽度提示时保留最先出现的；分组顺序为首次出现的顺序。
        """
        groups: Dict[str, CandidateImage] = {}
        for url in urls:
            key = strip_query(url)
            hint = width_hint(url)
            current = groups.get(key)
            if current is None:
                groups[key] = CandidateImage(raw_url=url, normalized_url=key, resolution_hint=hint)
            elif hint is not None and (current.resolution_hint is None or hint > current.resolution_hint):
                # 替换值不改变 dict 中的位置
                groups[key] = CandidateImage(raw_url=url, normalized_url=key, resolution_hint=hint)
        return list(groups.values())

    def is_decorative(self, url: str) -> bool:
        """是否为图标、logo、缩略图等装饰性素材"""
        parsed = urlparse(url.lower())
        if DECORATIVE_MARKERS.search(parsed.path) or DECORATIVE_MARKERS.search(parsed.query):
            return True
        return bool(THUMBNAIL_QUERY.search(parsed.query))

    def has_expected_segment(self, url: str) -> bool:
        """URL路径中是否包含 lots/items/products/images/gallery/uploads 等段"""
        segments = [s for s in urlparse(url).path.lower().split("/") if s]
        # 最后一段是文件名
        return any(segment in EXPECTED_PATH_SEGMENTS for segment in segments[:-1])

    def _find_container(self, soup: BeautifulSoup) -> Optional[Tag]:
        """按顺序尝试容器选择器，第一个命中的生效"""
        for selector in self.extraction.container_selectors:
            container = soup.select_one(selector)
            if container is not None:
                logger.debug(f"Gallery container matched: {selector}")
                return container
        return None

    def _element_urls(self, element: Tag) -> List[str]:
        """严格模式：href → data-*(large/full/zoom/original) → src"""
        values = []
        href = element.get("href")
        if isinstance(href, str):
            values.append(href)
        for name, value in element.attrs.items():
            if name.startswith("data-") and isinstance(value, str):
                if any(marker in name.lower() for marker in DATA_ATTRIBUTE_MARKERS):
                    values.append(value)
        src = element.get("src")
        if isinstance(src, str):
            values.append(src)
        return [v.strip() for v in values if v and v.strip() and self._has_image_extension(v.strip(), self.allowed_formats)]

    def _accept_strict(self, url: str) -> bool:
        return not self.is_decorative(url) and self.has_expected_segment(url)

    def _absolute(self, url: str, base_url: Optional[str]) -> str:
        return resolve_url(url, base_url) if base_url else url

    def _strict_image_urls(self, soup: BeautifulSoup, base_url: Optional[str]) -> List[str]:
        urls = []
        container = self._find_container(soup)
        if container is not None:
            for element in [container, *container.find_all(True)]:
                for raw in self._element_urls(element):
                    url = self._absolute(raw, base_url)
                    if self._accept_strict(url):
                        urls.append(url)

        if not urls:
            # 容器缺失或容器内没有合格图片：回退到 ld+json
            for raw in self._structured_data_urls(soup):
                url = self._absolute(raw, base_url)
                if self._accept_strict(url):
                    urls.append(url)
            if urls:
                logger.debug(f"Using {len(urls)} image(s) from structured data")
        return urls

    def _permissive_image_urls(self, soup: BeautifulSoup, base_url: Optional[str]) -> List[str]:
        urls = []
        for img in soup.find_all("img"):
            for attr in LAZY_IMG_ATTRIBUTES:
                value = img.get(attr)
                if not isinstance(value, str) or not value.strip() or value.strip().startswith("data:"):
                    continue
                url = self._absolute(value.strip(), base_url)
                if not self.is_decorative(url):
                    urls.append(url)
        return urls

    # ==================== 结构化数据 ====================

    def _structured_data_urls(self, soup: BeautifulSoup) -> List[str]:
        """从 application/ld+json 的 Product/Offer 中取 image"""
        urls: List[str] = []
        for script in soup.find_all("script", attrs={"type": re.compile(r"application/ld\+json", re.I)}):
            raw = script.string or script.get_text()
            try:
                data = json.loads(raw)
            except (json.JSONDecodeError, TypeError) as e:
                logger.debug(f"Skipping malformed ld+json block: {e}")
                continue
            self._collect_structured_images(data, urls)
        return urls

    def _collect_structured_images(self, data: Any, urls: List[str]):
        if isinstance(data, list):
            for item in data:
                self._collect_structured_images(item, urls)
            return
        if not isinstance(data, dict):
            return

        types = data.get("@type", [])
        if isinstance(types, str):
            types = [types]
        if any(isinstance(t, str) and t.lower() in STRUCTURED_DATA_TYPES for t in types):
            for url in self._image_values(data.get("image")):
                if url not in urls:
                    urls.append(url)

        for key in ("@graph", "offers", "itemOffered", "mainEntity"):
            if key in data:
                self._collect_structured_images(data[key], urls)

    def _image_values(self, value: Any) -> List[str]:
        """image 字段可以是字符串、列表或 ImageObject"""
        if isinstance(value, str):
            return [value.strip()] if value.strip() else []
        if isinstance(value, dict):
            url = value.get("url") or value.get("contentUrl")
            return [url.strip()] if isinstance(url, str) and url.strip() else []
        if isinstance(value, list):
            result = []
            for item in value:
                result.extend(self._image_values(item))
            return result
        return []
