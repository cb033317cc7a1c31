"""
归档器 - 将裁剪后的工作区打包为单个 .asar 文件

职责：
1. 序列化工作区目录树（路径 + 内容 + 偏移/大小/可执行位）
2. 先写临时文件再原子替换，失败时删除残留，不留下无效归档
3. 成功后销毁工作区

测试要点：
- test_archive_roundtrip: 解包后路径与字节一致
- test_archive_failure_cleanup: 失败不留残留文件
- test_archive_destroys_workspace: 成功后工作区删除
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from ..interfaces import ArchiveWriteError, IArchiver
from ..staging.workspace import destroy_workspace
from .asar_format import DEFAULT_BLOCK_SIZE, write_archive

logger = logging.getLogger(__name__)


class Archiver(IArchiver):
    """归档器实现"""

    def __init__(self, integrity: bool = True, block_size: int = DEFAULT_BLOCK_SIZE):
        self.integrity = integrity
        self.block_size = block_size

    def archive(self, workspace: Path, output_path: Path) -> Path:
        """打包工作区"""
        if not workspace.is_dir():
            raise ArchiveWriteError(f"工作区不存在: {workspace}")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveWriteError(f"无法创建输出目录 {output_path.parent}: {e}") from e

        tmp_path = output_path.with_name(f".{output_path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            size = write_archive(
                workspace,
                tmp_path,
                integrity=self.integrity,
                block_size=self.block_size,
            )
            os.replace(tmp_path, output_path)
        except (OSError, UnicodeError) as e:
            self._discard(tmp_path)
            raise ArchiveWriteError(f"归档写入失败 {output_path.name}: {e}") from e
        except BaseException:
            self._discard(tmp_path)
            raise

        logger.info(f"归档完成: {output_path} ({size} 字节)")

        try:
            destroy_workspace(workspace)
        except OSError as e:
            # 归档已有效，工作区由流水线收尾时再次清理
            logger.warning(f"工作区删除失败: {workspace}: {e}")

        return output_path

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"残留归档删除失败: {path}: {e}")
