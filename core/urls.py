"""
URL 工具函数

图片URL的解析、规范化和文件名生成。
"""
import os
import re
from typing import Iterable, Optional
from urllib.parse import urlsplit

WIDTH_PARAM = re.compile(r"[?&]w=(\d+)")


def resolve_url(candidate: str, base_url: str) -> str:
    """
    将候选URL解析为绝对URL

    - 协议相对（//host/...）：补 https:
    - 根相对（/path）：补 base 的 scheme + host
    - 绝对URL：原样返回
    - 其他相对路径：拼到 base 所在目录（最后一个 / 之前）

    Args:
        candidate: 候选URL
        base_url: 页面URL

    Returns:
        绝对URL
    """
    candidate = candidate.strip()
    if candidate.startswith("//"):
        return f"https:{candidate}"
    if re.match(r"^[a-zA-Z][a-zA-Z0-9+.-]*://", candidate):
        return candidate

    parsed = urlsplit(base_url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    if candidate.startswith("/"):
        return f"{origin}{candidate}"

    path = parsed.path or "/"
    directory = path[: path.rfind("/") + 1]
    return f"{origin}{directory}{candidate}"


def strip_query(url: str) -> str:
    """去掉查询串和片段"""
    return re.split(r"[?#]", url, maxsplit=1)[0]


def width_hint(url: str) -> Optional[int]:
    """从 ?w= / &w= 参数解析宽度，没有则返回 None"""
    match = WIDTH_PARAM.search(url)
    return int(match.group(1)) if match else None


def url_extension(url: str, allowed_formats: Iterable[str], default: str = ".jpg") -> str:
    """
    从URL路径取文件扩展名

    Args:
        url: 图片URL
        allowed_formats: 允许的格式（不带点）
        default: 无法识别时的扩展名

    Returns:
        带点的小写扩展名
    """
    path = urlsplit(url).path
    ext = os.path.splitext(path)[1].lower().lstrip(".")
    if ext and ext in {f.lower() for f in allowed_formats}:
        return f".{ext}"
    return default


def image_filename(lot_id: str, position: int, extension: str) -> str:
    """
    生成图片文件名

    同一拍品的第一张为 <lot><ext>，之后为 <lot>-2<ext>、<lot>-3<ext> ...

    Args:
        lot_id: 拍品号
        position: 在提取结果中的序号（从1开始）
        extension: 带点的扩展名
    """
    if position <= 1:
        return f"{lot_id}{extension}"
    return f"{lot_id}-{position}{extension}"
