"""rockkit - rockspec 清单规范化工具"""

__version__ = "0.3.0"
