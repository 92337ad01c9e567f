"""H-Cloud 个人云存储后端。"""

__version__ = "0.1.0"
