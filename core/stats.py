"""
运行统计

显式的统计对象：每个页面返回一份增量，由调用方 merge 累加，不使用全局状态。
"""
from typing import Any, Dict, List, Set

from pydantic import BaseModel, Field

from core.models import FetchResult, FetchStatus


def format_bytes(size: int) -> str:
    """字节数转为可读字符串"""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.2f} {unit}"
        value /= 1024
    return f"{value:.2f} GB"


class RunStatistics(BaseModel):
    """运行统计"""
    urls_processed: int = 0
    urls_failed: int = 0
    images_found: int = 0
    images_downloaded: int = 0
    images_skipped: int = 0
    images_duplicate: int = 0
    images_failed: int = 0
    bytes_downloaded: int = 0
    bytes_saved: int = 0
    lots: Set[str] = Field(default_factory=set)

    def record_image(self, result: FetchResult):
        """按单张图片的处理结果更新计数"""
        if result.status is FetchStatus.STORED:
            self.images_downloaded += 1
            self.bytes_downloaded += result.bytes_fetched
        elif result.status is FetchStatus.FAILED:
            self.images_failed += 1
        elif result.reason == "duplicate":
            self.images_duplicate += 1
            self.bytes_saved += result.bytes_fetched
        else:
            self.images_skipped += 1

    def merge(self, other: "RunStatistics") -> "RunStatistics":
        """累加另一份统计（原地修改并返回自身）"""
        for name in self.counter_names():
            setattr(self, name, getattr(self, name) + getattr(other, name))
        self.lots |= other.lots
        return self

    @classmethod
    def counter_names(cls) -> List[str]:
        return [name for name, field in cls.model_fields.items() if field.annotation is int]

    @property
    def distinct_lots(self) -> int:
        return len(self.lots)

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in self.counter_names()}
        data["distinct_lots"] = self.distinct_lots
        return data

    def summary_lines(self) -> List[str]:
        """人类可读的统计摘要"""
        return [
            f"  处理URL: {self.urls_processed}",
            f"  失败URL: {self.urls_failed}",
            f"  发现图片: {self.images_found}",
            f"  下载成功: {self.images_downloaded}",
            f"  已存在跳过: {self.images_skipped}",
            f"  去重跳过: {self.images_duplicate}",
            f"  下载失败: {self.images_failed}",
            f"  下载字节: {format_bytes(self.bytes_downloaded)}",
            f"  去重节省: {format_bytes(self.bytes_saved)}",
            f"  拍品数: {self.distinct_lots}",
        ]
