"""
输入读取：从 CSV 文件读取拍品页面URL
"""
import csv
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

# 常见的URL列名（不区分大小写）
URL_COLUMN_CANDIDATES = ("url", "link", "href", "lot_url", "lot url", "lot link", "page_url", "page url")


class InputError(Exception):
    """输入错误（致命，处理开始前中止）"""


def detect_url_column(header: Sequence[str]) -> int:
    """
    识别URL列

    Args:
        header: CSV表头

    Returns:
        列序号；没有匹配的列名时返回0（第一列）
    """
    normalized = [h.strip().lower() for h in header]
    for candidate in URL_COLUMN_CANDIDATES:
        if candidate in normalized:
            return normalized.index(candidate)
    return 0


def read_urls(csv_path: Path, column: Optional[str] = None) -> List[str]:
    """
    读取CSV中的URL列表

    Args:
        csv_path: CSV文件路径
        column: 指定列名，为空时自动识别

    Returns:
        URL列表（跳过空行）

    Raises:
        InputError: 文件不存在/无法读取、没有表头、指定列不存在或没有任何URL
    """
    csv_path = Path(csv_path)
    if not csv_path.is_file():
        raise InputError(f"CSV file not found: {csv_path}")

    try:
        with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
            rows = list(csv.reader(f))
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise InputError(f"Cannot read CSV file {csv_path}: {e}") from e

    if not rows or not any(cell.strip() for cell in rows[0]):
        raise InputError(f"CSV file has no header row: {csv_path}")

    header, body = rows[0], rows[1:]
    if column:
        lowered = [h.strip().lower() for h in header]
        if column.lower() not in lowered:
            raise InputError(f"Column '{column}' not found in {csv_path} (columns: {', '.join(header)})")
        index = lowered.index(column.lower())
    else:
        index = detect_url_column(header)
    logger.info(f"Using URL column '{header[index].strip()}' from {csv_path.name}")

    urls = []
    for row in body:
        if index < len(row) and row[index].strip():
            urls.append(row[index].strip())

    if not urls:
        raise InputError(f"No URLs found in {csv_path}")
    return urls
