"""
asar 归档格式 - 头部 + 条目索引 + 载荷

文件布局（小端）：
    [0:8]   size pickle: uint32 4, uint32 header_pickle_size
    [8:..]  header pickle: uint32 payload_size, uint32 json_len, JSON, 补齐到4字节
    [..]    载荷：文件内容按索引顺序拼接

JSON 索引：
    {"files": {"dir": {"files": {...}}, "a.js": {"size": 3, "offset": "0",
               "executable": true, "integrity": {...}}}}
offset 为十进制字符串，相对载荷起点（8 + header_pickle_size），
可直接定位单个条目而无需扫描整个文件。
"""

from __future__ import annotations

import hashlib
import json
import os
import stat
import struct
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO, Iterator

from ..interfaces import ArchiveReadError, ArchiveWriteError

DEFAULT_BLOCK_SIZE = 4 * 1024 * 1024
INTEGRITY_ALGORITHM = "SHA256"
_COPY_CHUNK = 1024 * 1024


@dataclass(frozen=True)
class AsarEntry:
    """归档中的文件条目"""
    path: str
    size: int
    offset: int
    executable: bool = False
    integrity: dict[str, Any] | None = None


# ============================================================================
# pickle 编码
# ============================================================================

def pickle_uint32(value: int) -> bytes:
    return struct.pack("<II", 4, value)


def pickle_string(text: str) -> bytes:
    data = text.encode("utf-8")
    payload = struct.pack("<I", len(data)) + data
    payload += b"\0" * (-len(payload) % 4)
    return struct.pack("<I", len(payload)) + payload


# ============================================================================
# 写入
# ============================================================================

def file_integrity(path: Path, block_size: int = DEFAULT_BLOCK_SIZE) -> dict[str, Any]:
    """整体 SHA256 + 分块 SHA256"""
    whole = hashlib.sha256()
    blocks: list[str] = []
    with open(path, "rb") as f:
        while True:
            block = f.read(block_size)
            if not block and blocks:
                break
            whole.update(block)
            blocks.append(hashlib.sha256(block).hexdigest())
            if len(block) < block_size:
                break
    return {
        "algorithm": INTEGRITY_ALGORITHM,
        "hash": whole.hexdigest(),
        "blockSize": block_size,
        "blocks": blocks,
    }


def build_index(
    root: Path,
    *,
    integrity: bool = True,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> tuple[dict[str, Any], list[Path]]:
    """遍历目录生成 JSON 索引，返回 (索引, 按载荷顺序排列的文件列表)"""
    files: list[Path] = []
    offset = 0

    def visit(directory: Path) -> dict[str, Any]:
        nonlocal offset
        children: dict[str, Any] = {}
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            try:
                entry.name.encode("utf-8")
            except UnicodeEncodeError:
                # 文件名含无法解码的字节，索引 JSON 无法表示
                raise ArchiveWriteError(f"归档条目名不是有效的 UTF-8: {entry.relative_to(root)!r}") from None
            if entry.is_dir():
                children[entry.name] = visit(entry)
                continue
            if not entry.is_file():
                raise OSError(f"不支持的条目类型: {entry}")
            st = entry.stat()
            node: dict[str, Any] = {"size": st.st_size, "offset": str(offset)}
            if st.st_mode & stat.S_IXUSR:
                node["executable"] = True
            if integrity:
                node["integrity"] = file_integrity(entry, block_size)
            children[entry.name] = node
            files.append(entry)
            offset += st.st_size
        return {"files": children}

    return visit(root), files


def write_archive(
    root: Path,
    dest: Path,
    *,
    integrity: bool = True,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> int:
    """写入归档，返回写入的总字节数"""
    index, files = build_index(root, integrity=integrity, block_size=block_size)
    header_json = json.dumps(index, separators=(",", ":"), ensure_ascii=False)
    header_pickle = pickle_string(header_json)

    written = 0
    with open(dest, "wb") as out:
        for chunk in (pickle_uint32(len(header_pickle)), header_pickle):
            out.write(chunk)
            written += len(chunk)
        for path in files:
            expected = path.stat().st_size
            copied = 0
            with open(path, "rb") as src:
                while True:
                    chunk = src.read(_COPY_CHUNK)
                    if not chunk:
                        break
                    out.write(chunk)
                    copied += len(chunk)
            if copied != expected:
                raise OSError(f"文件在归档过程中被修改: {path}")
            written += copied
        out.flush()
        os.fsync(out.fileno())
    return written


# ============================================================================
# 读取
# ============================================================================

def read_header(fh: BinaryIO) -> tuple[dict[str, Any], int]:
    """读取索引，返回 (索引, 载荷起点)"""
    size_buf = fh.read(8)
    if len(size_buf) != 8:
        raise ArchiveReadError("归档头部不完整")
    pickle_size, header_size = struct.unpack("<II", size_buf)
    if pickle_size != 4:
        raise ArchiveReadError(f"归档头部格式错误: size pickle={pickle_size}")

    header_buf = fh.read(header_size)
    if len(header_buf) != header_size or header_size < 8:
        raise ArchiveReadError("归档索引不完整")
    _payload_size, json_len = struct.unpack_from("<II", header_buf, 0)
    json_bytes = header_buf[8 : 8 + json_len]
    if len(json_bytes) != json_len:
        raise ArchiveReadError("归档索引长度不一致")
    try:
        index = json.loads(json_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArchiveReadError(f"归档索引不是有效JSON: {e}") from e
    if not isinstance(index, dict) or not isinstance(index.get("files"), dict):
        raise ArchiveReadError("归档索引缺少 files")
    return index, 8 + header_size


def iter_entries(index: dict[str, Any]) -> Iterator[tuple[str, dict[str, Any] | None]]:
    """按索引顺序遍历 (路径, 文件节点)；目录节点的文件节点为 None"""

    def walk(node: dict[str, Any], prefix: PurePosixPath) -> Iterator[tuple[str, dict[str, Any] | None]]:
        for name, child in node["files"].items():
            if not name or name in (".", "..") or "/" in name or "\\" in name:
                raise ArchiveReadError(f"归档条目名非法: {name!r}")
            path = prefix / name
            if "files" in child:
                yield path.as_posix(), None
                yield from walk(child, path)
            else:
                yield path.as_posix(), child

    yield from walk(index, PurePosixPath())


def to_entry(path: str, node: dict[str, Any]) -> AsarEntry:
    if node.get("unpacked") or "link" in node:
        raise ArchiveReadError(f"不支持的条目（unpacked/link）: {path}")
    try:
        return AsarEntry(
            path=path,
            size=int(node["size"]),
            offset=int(node["offset"]),
            executable=bool(node.get("executable", False)),
            integrity=node.get("integrity"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ArchiveReadError(f"条目元数据损坏: {path}") from e
