#!/usr/bin/env python3
"""
图像风格变换API服务启动脚本
"""

from photo_style_api.app.main import run_server

if __name__ == "__main__":
    print("启动图像风格变换API服务...")
    run_server()
