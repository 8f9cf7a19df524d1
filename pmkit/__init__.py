"""pmkit - 制品打包与依赖分发工具"""

__version__ = "0.3.0"
