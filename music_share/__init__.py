"""音乐文件分享服务"""

__version__ = "1.0.0"
