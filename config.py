"""
配置管理模块 - 拍卖拍品图片下载器
统一配置管理，支持环境变量与 JSON 配置文件
"""
from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
import os
import json
from pathlib import Path
from dotenv import load_dotenv
from loguru import logger

load_dotenv()

# 项目根目录
BASE_DIR = Path(__file__).parent

# 索引文件名（位于下载目录下）
INDEX_FILENAME = ".image_index.json"

LOG_LEVELS = ("off", "error", "warning", "info", "debug", "all")


class CrawlerConfig(BaseModel):
    """爬虫配置"""
    # 请求控制（串行处理，页面之间固定延迟）
    download_delay: float = Field(default=0.5, description="页面请求间隔（秒）")
    request_timeout: int = Field(default=30, description="请求超时时间")
    follow_redirects: bool = Field(default=True, description="是否跟随重定向")

    # User-Agent配置
    user_agent: Optional[str] = Field(default=None, description="固定UA，为空时使用 fake_useragent")
    rotate_user_agent: bool = Field(default=False, description="是否轮换UA")


class ExtractionConfig(BaseModel):
    """拍品信息提取配置"""
    # None 表示根据域名自动选择
    strict_mode: Optional[bool] = Field(default=None, description="严格模式（仅主图容器）")
    strict_hosts: List[str] = Field(
        default_factory=lambda: [
            "hibid.com",
            "proxibid.com",
            "liveauctioneers.com",
            "invaluable.com",
            "bidspotter.com",
            "auctionzip.com",
        ],
        description="触发严格模式的域名片段",
    )
    container_selectors: List[str] = Field(
        default_factory=lambda: [
            "#lot-gallery",
            ".lot-gallery",
            ".lot-images",
            "#lot-images",
            ".lot-detail-images",
            ".lot-details",
            "#lotDetail",
            ".item-gallery",
            ".product-gallery",
            ".image-gallery",
            "[data-gallery]",
        ],
        description="主图容器选择器（按顺序，首个命中即停止）",
    )
    permissive_fallback: bool = Field(default=True, description="严格模式无结果时回退到宽松模式")
    fallback_lot_start: int = Field(default=90000, description="无法识别拍品号时的起始编号")


class ImageConfig(BaseModel):
    """图片配置"""
    # 存储路径
    download_dir: Path = Field(default=BASE_DIR / "downloads", description="下载目录")
    temp_dir: Path = Field(default=BASE_DIR / "temp", description="临时目录")
    index_file: Optional[Path] = Field(default=None, description="索引文件，默认位于下载目录")

    # 图片格式
    allowed_formats: List[str] = Field(
        default_factory=lambda: ["jpg", "jpeg", "png", "gif", "webp", "bmp"],
        description="允许的图片格式"
    )
    default_extension: str = Field(default=".jpg", description="无法识别扩展名时使用")

    # 图片处理
    max_images_per_page: int = Field(default=0, description="每页最多下载图片数（0为不限制）")
    enable_deduplication: bool = Field(default=True, description="启用图片去重")
    verify_images: bool = Field(default=True, description="下载后用 Pillow 校验图片内容")
    checkpoint_interval: int = Field(default=10, description="每存储N张图片写一次索引")
    rebuild_index: bool = Field(default=False, description="运行前强制重建索引")

    @field_validator("default_extension")
    @classmethod
    def _dotted(cls, value: str) -> str:
        value = value.lower()
        return value if value.startswith(".") else f".{value}"

    @property
    def index_path(self) -> Path:
        """索引文件路径"""
        return self.index_file or self.download_dir / INDEX_FILENAME


class LogConfig(BaseModel):
    """日志配置"""
    log_level: str = Field(default="info", description="日志级别: off/error/warning/info/debug/all")
    log_dir: Path = Field(default=BASE_DIR / "logs", description="日志目录")
    log_file: str = Field(default="lot_images.log", description="日志文件名")
    no_log_file: bool = Field(default=False, description="不写日志文件")
    rotation: str = Field(default="100 MB", description="日志轮转大小")
    retention: str = Field(default="30 days", description="日志保留时间")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"未知的日志级别: {value}，可用: {', '.join(LOG_LEVELS)}")
        return value


class Config(BaseModel):
    """全局配置"""
    crawler: CrawlerConfig = Field(default_factory=CrawlerConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    image: ImageConfig = Field(default_factory=ImageConfig)
    log: LogConfig = Field(default_factory=LogConfig)

    def create_directories(self):
        """创建必要的目录"""
        self.image.download_dir.mkdir(parents=True, exist_ok=True)
        self.image.temp_dir.mkdir(parents=True, exist_ok=True)
        if not self.log.no_log_file and self.log.log_level != "off":
            self.log.log_dir.mkdir(parents=True, exist_ok=True)

    def with_output_dir(self, download_dir: Path) -> "Config":
        """
        以新的下载目录派生配置

        临时目录与日志目录跟随下载目录，重建索引时会被排除。
        """
        download_dir = Path(download_dir)
        updated = self.model_copy(deep=True)
        updated.image.download_dir = download_dir
        updated.image.temp_dir = download_dir / ".tmp"
        updated.image.index_file = None
        updated.log.log_dir = download_dir / "logs"
        return updated


# ============================================================================
# 配置文件加载
# ============================================================================

def load_config_file(config_file: Path) -> Dict[str, Any]:
    """
    加载 JSON 配置文件

    Args:
        config_file: 配置文件路径

    Returns:
        配置字典

    Raises:
        FileNotFoundError: 配置文件不存在
        json.JSONDecodeError: JSON格式错误
    """
    with open(config_file, 'r', encoding='utf-8') as f:
        return json.load(f)


def create_config_from_dict(data: Dict[str, Any], base: Optional[Config] = None) -> Config:
    """
    从字典创建Config对象（按节覆盖 base）

    Args:
        data: 配置字典，键为 crawler / extraction / image / log
        base: 基础配置，默认使用环境变量配置

    Returns:
        Config实例
    """
    merged = (base or load_config_from_env()).model_dump()
    for section in ("crawler", "extraction", "image", "log"):
        overrides = data.get(section) or {}
        merged[section].update(overrides)
    return Config(**merged)


def _env_bool(name: str, default: Optional[bool]) -> Optional[bool]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


# 从环境变量加载配置
def load_config_from_env() -> Config:
    """从环境变量加载配置"""
    image: Dict[str, Any] = {
        "max_images_per_page": int(os.getenv("MAX_IMAGES_PER_PAGE", "0")),
        "enable_deduplication": _env_bool("ENABLE_DEDUPLICATION", True),
    }
    config_data = {
        "crawler": {
            "download_delay": float(os.getenv("DOWNLOAD_DELAY", "0.5")),
            "request_timeout": int(os.getenv("REQUEST_TIMEOUT", "30")),
            "user_agent": os.getenv("USER_AGENT") or None,
        },
        "extraction": {
            "strict_mode": _env_bool("STRICT_MODE", None),
        },
        "image": image,
        "log": {
            "log_level": os.getenv("LOG_LEVEL", "info"),
        }
    }
    loaded = Config(**config_data)
    output_dir = os.getenv("LOT_OUTPUT_DIR")
    if output_dir:
        logger.debug(f"Using output directory from LOT_OUTPUT_DIR: {output_dir}")
        loaded = loaded.with_output_dir(Path(output_dir))
    return loaded


# 全局配置实例（默认从环境变量加载）
config = load_config_from_env()
