"""
归档读取器 - 列表/随机读取/完整性校验/解包

使用方式：
    with AsarReader(Path("dist/demo-ext.asar")) as reader:
        reader.list_files()
        reader.read("index.js")
        reader.verify()
        reader.extract_all(Path("out"))
"""

from __future__ import annotations

import hashlib
import logging
import os
import stat
from pathlib import Path
from typing import Any, BinaryIO

from ..interfaces import ArchiveReadError
from .asar_format import INTEGRITY_ALGORITHM, AsarEntry, iter_entries, read_header, to_entry

logger = logging.getLogger(__name__)


class AsarReader:
    """asar 归档读取器"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._fh: BinaryIO | None = None
        self._index: dict[str, Any] | None = None
        self._payload_start = 0
        self._entries: dict[str, AsarEntry] = {}
        self._dirs: list[str] = []

    def __enter__(self) -> AsarReader:
        self.open()
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def open(self) -> None:
        if self._fh is not None:
            return
        try:
            self._fh = open(self.path, "rb")
        except OSError as e:
            raise ArchiveReadError(f"无法打开归档 {self.path}: {e}") from e
        try:
            self._index, self._payload_start = read_header(self._fh)
            for rel, node in iter_entries(self._index):
                if node is None:
                    self._dirs.append(rel)
                else:
                    self._entries[rel] = to_entry(rel, node)
        except ArchiveReadError:
            self.close()
            raise

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None

    def _handle(self) -> BinaryIO:
        self.open()
        assert self._fh is not None
        return self._fh

    # === 查询 ===

    def list_files(self) -> list[str]:
        """所有文件的相对路径（索引顺序）"""
        self._handle()
        return list(self._entries)

    def list_dirs(self) -> list[str]:
        self._handle()
        return list(self._dirs)

    def entry(self, rel_path: str) -> AsarEntry:
        self._handle()
        try:
            return self._entries[rel_path.strip("/")]
        except KeyError:
            raise ArchiveReadError(f"归档中不存在: {rel_path}") from None

    def read(self, rel_path: str) -> bytes:
        """随机读取单个文件（按索引偏移定位）"""
        entry = self.entry(rel_path)
        fh = self._handle()
        fh.seek(self._payload_start + entry.offset)
        data = fh.read(entry.size)
        if len(data) != entry.size:
            raise ArchiveReadError(f"归档载荷截断: {rel_path}")
        return data

    # === 校验与解包 ===

    def verify(self) -> None:
        """按 integrity 重新计算 SHA256（无 integrity 的条目仅校验长度）"""
        self._handle()
        for rel, entry in self._entries.items():
            data = self.read(rel)
            integrity = entry.integrity
            if not integrity:
                continue
            if integrity.get("algorithm") != INTEGRITY_ALGORITHM:
                raise ArchiveReadError(f"不支持的完整性算法: {integrity.get('algorithm')}")
            if hashlib.sha256(data).hexdigest() != integrity.get("hash"):
                raise ArchiveReadError(f"完整性校验失败: {rel}")
            block_size = int(integrity.get("blockSize") or len(data) or 1)
            blocks = [
                hashlib.sha256(data[i : i + block_size]).hexdigest()
                for i in range(0, max(len(data), 1), block_size)
            ]
            if integrity.get("blocks") and blocks != integrity["blocks"]:
                raise ArchiveReadError(f"分块校验失败: {rel}")

    def extract_all(self, dest: Path) -> list[Path]:
        """解包到目标目录，返回写出的文件列表"""
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        for rel in self.list_dirs():
            (dest / rel).mkdir(parents=True, exist_ok=True)

        written: list[Path] = []
        for rel, entry in self._entries.items():
            target = dest / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(self.read(rel))
            if entry.executable:
                mode = target.stat().st_mode
                os.chmod(target, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            written.append(target)
        logger.debug(f"解包完成: {len(written)} 个文件 → {dest}")
        return written


def extract_archive(path: Path, dest: Path) -> list[Path]:
    """解包便捷函数"""
    with AsarReader(path) as reader:
        return reader.extract_all(dest)
