"""
数据模型

- CandidateImage: 提取阶段得到的候选图片
- CacheEntry: 索引中的一条记录（以内容哈希为键）
- FetchStatus / FetchResult: 单张图片的处理结果
"""
import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

SHA256_HEX = re.compile(r"^[0-9a-f]{64}$")


class CandidateImage(BaseModel):
    """候选图片"""
    raw_url: str
    normalized_url: str = Field(description="去掉查询串后的URL，用于分组去重")
    resolution_hint: Optional[int] = Field(default=None, description="w= 参数给出的宽度")


class CacheEntry(BaseModel):
    """索引记录"""
    content_hash: str
    file_path: str
    file_size: int = Field(ge=0)
    date_added: datetime
    lot_id: Optional[str] = None
    source_url: Optional[str] = None

    @field_validator("content_hash")
    @classmethod
    def _sha256_hex(cls, value: str) -> str:
        value = value.lower()
        if not SHA256_HEX.match(value):
            raise ValueError(f"not a sha256 hex digest: {value!r}")
        return value


class FetchStatus(str, Enum):
    STORED = "stored"
    SKIPPED = "skipped"
    FAILED = "failed"


class FetchResult(BaseModel):
    """fetch_and_store 的返回值"""
    status: FetchStatus
    url: str
    destination: str
    reason: Optional[str] = None
    content_hash: Optional[str] = None
    bytes_fetched: int = 0
    error: Optional[str] = None

    @property
    def stored(self) -> bool:
        return self.status is FetchStatus.STORED

    @property
    def duplicate(self) -> bool:
        return self.status is FetchStatus.SKIPPED and self.reason == "duplicate"
