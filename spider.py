"""
拍卖拍品图片下载器 - 命令行入口

从拍品页面提取拍品号和图片，按内容哈希去重后保存到输出目录。
"""
import asyncio
import sys
from typing import List, Optional

from loguru import logger

from cli.commands import create_parser
from cli.handlers import handle_download, handle_rebuild_index, handle_index_status

HANDLERS = {
    'download': handle_download,
    'rebuild-index': handle_rebuild_index,
    'index-status': handle_index_status,
}


async def main(argv: Optional[List[str]] = None) -> int:
    """主函数 - 子命令模式"""
    parser = create_parser()
    args = parser.parse_args(argv)

    print("\n" + "=" * 60)
    print("🔨 拍卖拍品图片下载器")
    print("=" * 60)

    return await HANDLERS[args.command](args)


def run():
    """命令行入口（同步）"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.warning("⚠️  用户中断")
        sys.exit(130)


if __name__ == "__main__":
    run()
