"""
CLI模块

包含命令行接口相关功能：
- handlers: 命令处理函数
- commands: argparse 定义
"""
from cli.handlers import (
    build_config,
    handle_download,
    handle_rebuild_index,
    handle_index_status,
    print_statistics,
)
from cli.commands import create_parser

__all__ = [
    'build_config',
    'handle_download',
    'handle_rebuild_index',
    'handle_index_status',
    'print_statistics',
    'create_parser',
]
