"""
CLI命令处理函数

返回值为进程退出码：只有致命的输入错误返回 1，页面/图片级失败不影响退出码。
"""
import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from config import Config, create_config_from_dict, load_config_file, load_config_from_env
from core.index import ImageIndex
from core.inputs import InputError, read_urls
from core.logger import setup_logger
from core.stats import RunStatistics, format_bytes
from spiders.lot_spider import LotImageSpider


def build_config(args) -> Config:
    """
    由命令行参数构建配置

    优先级：命令行 > --config 文件 > 环境变量

    Raises:
        InputError: 配置文件不存在或内容无效
    """
    config = load_config_from_env()
    config_file = getattr(args, 'config', None)
    if config_file:
        try:
            config = create_config_from_dict(load_config_file(Path(config_file)), base=config)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise InputError(f"Invalid config file {config_file}: {e}") from e

    if getattr(args, 'output', None):
        config = config.with_output_dir(Path(args.output))
    if getattr(args, 'log_level', None):
        config.log.log_level = args.log_level
    if getattr(args, 'no_log_file', False):
        config.log.no_log_file = True
    if getattr(args, 'max_images', None) is not None:
        config.image.max_images_per_page = max(0, args.max_images)
    if getattr(args, 'strict_mode', None) is not None:
        config.extraction.strict_mode = args.strict_mode
    if getattr(args, 'no_dedup', False):
        config.image.enable_deduplication = False
    if getattr(args, 'rebuild_index', False):
        config.image.rebuild_index = True
    return config


def _open_index(config: Config) -> ImageIndex:
    return ImageIndex(
        index_path=config.image.index_path,
        root=config.image.download_dir,
        image_extensions=config.image.allowed_formats,
        excluded_dirs=[config.image.temp_dir, config.log.log_dir],
    )


async def handle_download(args) -> int:
    """处理 download 子命令"""
    try:
        config = build_config(args)
    except InputError as e:
        logger.error(f"❌ {e}")
        return 1
    setup_logger(config.log)

    print(f"\n📌 命令: 下载拍品图片")
    print(f"输出目录: {config.image.download_dir}")

    if args.csv:
        try:
            urls = read_urls(Path(args.csv), column=args.column)
        except InputError as e:
            logger.error(f"❌ 输入错误: {e}")
            return 1
        logger.info(f"📝 从 CSV 加载 {len(urls)} 个URL")
    else:
        urls = [u.strip() for u in args.urls if u and u.strip()]
        if not urls:
            logger.error("❌ 输入错误: 没有可处理的URL")
            return 1

    async with LotImageSpider(config) as spider:
        logger.info(f"🚀 开始处理 {len(urls)} 个URL...")
        stats = await spider.run(urls)

    print_statistics(stats)
    return 0


async def handle_rebuild_index(args) -> int:
    """处理 rebuild-index 子命令"""
    try:
        config = build_config(args)
    except InputError as e:
        logger.error(f"❌ {e}")
        return 1
    setup_logger(config.log)

    print(f"\n📌 命令: 重建索引")
    print(f"输出目录: {config.image.download_dir}")

    index = _open_index(config)
    result = index.rebuild()
    index.persist()

    print("\n" + "=" * 60)
    print("📂 重建结果:")
    print(f"  扫描文件: {result['files_scanned']}")
    print(f"  索引记录: {result['entries']}")
    print(f"  重复文件: {result['duplicates']}")
    print(f"  读取失败: {result['errors']}")
    print("=" * 60)
    return 0


async def handle_index_status(args) -> int:
    """处理 index-status 子命令"""
    try:
        config = build_config(args)
    except InputError as e:
        logger.error(f"❌ {e}")
        return 1
    setup_logger(config.log)

    print(f"\n📌 命令: 查看索引")
    index = _open_index(config)
    if not index.load():
        print("ℹ️  没有找到可用的索引")
        print(f"   位置: {index.index_path}")
        return 0

    stats = index.get_statistics()
    print("\n" + "=" * 60)
    print("📂 索引信息:")
    print(f"  位置: {stats['index_path']}")
    print(f"  记录数: {stats['entries']}")
    print(f"  总大小: {format_bytes(stats['total_bytes'])}")
    print(f"  拍品数: {stats['lots']}")
    print("=" * 60)
    return 0


def print_statistics(stats: RunStatistics):
    """输出统计信息"""
    lines = stats.summary_lines()
    print("\n" + "=" * 60)
    print("📊 运行统计:")
    for line in lines:
        print(line)
    print("=" * 60)
    logger.info(f"📊 运行统计: {stats.to_dict()}")
