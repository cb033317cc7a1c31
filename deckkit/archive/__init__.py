"""
归档模块 - asar 格式写入与读取

子模块：
- asar_format: 头部/索引/载荷编码
- archiver: 工作区 → 归档文件
- reader: 列表/随机读取/校验/解包
"""

from .archiver import Archiver
from .asar_format import AsarEntry, build_index, write_archive
from .reader import AsarReader, extract_archive

__all__ = [
    "Archiver",
    "AsarEntry",
    "AsarReader",
    "build_index",
    "write_archive",
    "extract_archive",
]
