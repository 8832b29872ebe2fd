"""
CLI命令定义（argparse）
"""
import argparse

from config import LOG_LEVELS


def _add_common_arguments(parser: argparse.ArgumentParser):
    """各子命令共用的参数"""
    parser.add_argument('--output', type=str, default=None,
                        help='图片输出目录（索引与日志默认放在其中）')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON 配置文件路径（按节覆盖 crawler/extraction/image/log）')
    parser.add_argument('--log-level', type=str, default=None, choices=LOG_LEVELS,
                        help='日志级别（默认 info）')
    parser.add_argument('--no-log-file', action='store_true',
                        help='不写日志文件')


def create_parser() -> argparse.ArgumentParser:
    """
    创建命令行参数解析器

    Returns:
        ArgumentParser 实例
    """
    parser = argparse.ArgumentParser(
        prog='spider.py',
        description='拍卖拍品图片下载器（内容去重）',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
示例:
  # 从 CSV 读取拍品页面（自动识别 URL 列）
  python spider.py download --csv lots.csv --output ./images

  # 单个页面，最多 5 张图，强制严格模式
  python spider.py download --url "https://www.hibid.com/lot/123456" --max-images 5 --strict

  # 重建索引 / 查看索引
  python spider.py rebuild-index --output ./images
  python spider.py index-status --output ./images
        '''
    )

    subparsers = parser.add_subparsers(dest='command', help='子命令', required=True)

    # ============================================================================
    # 子命令: download - 下载拍品图片
    # ============================================================================
    parser_download = subparsers.add_parser('download', help='下载拍品图片（--csv 或 --url）')
    source = parser_download.add_mutually_exclusive_group(required=True)
    source.add_argument('--csv', type=str, help='包含页面URL的 CSV 文件')
    source.add_argument('--url', type=str, action='append', dest='urls',
                        help='页面URL（可重复）')
    parser_download.add_argument('--column', type=str, default=None,
                                 help='CSV 中的 URL 列名（默认自动识别）')
    parser_download.add_argument('--max-images', type=int, default=None,
                                 help='每页最多下载图片数（0 为不限制）')
    mode = parser_download.add_mutually_exclusive_group()
    mode.add_argument('--strict', dest='strict_mode', action='store_const', const=True, default=None,
                      help='严格模式：只取主图容器内的图片')
    mode.add_argument('--permissive', dest='strict_mode', action='store_const', const=False,
                      help='宽松模式：扫描整页 <img>')
    parser_download.add_argument('--no-dedup', action='store_true',
                                 help='关闭去重（总是覆盖写入）')
    parser_download.add_argument('--rebuild-index', action='store_true',
                                 help='运行前强制重建索引')
    _add_common_arguments(parser_download)

    # ============================================================================
    # 子命令: rebuild-index - 扫描输出目录重建索引
    # ============================================================================
    parser_rebuild = subparsers.add_parser('rebuild-index', help='扫描输出目录重建哈希索引')
    _add_common_arguments(parser_rebuild)

    # ============================================================================
    # 子命令: index-status - 查看索引
    # ============================================================================
    parser_status = subparsers.add_parser('index-status', help='查看哈希索引统计')
    _add_common_arguments(parser_status)

    return parser
