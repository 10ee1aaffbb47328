"""
开发环境启动入口

    python main.py [--host 0.0.0.0] [--port 8000] [--no-reload]
"""
import argparse
import os
import sys

import uvicorn

# 保证从任意目录启动都能找到 salesflow 包
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def parse_args():
    parser = argparse.ArgumentParser(description="销售交付流程引擎 API 服务")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--no-reload", action="store_true", help="关闭代码热重载")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    uvicorn.run(
        "salesflow.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level="info",
    )
