"""
安装器 - 复制归档到 Deckboard 扩展目录

职责：
- 创建扩展目录（如不存在）
- 同名归档覆盖（临时文件 + 原子替换）
- 失败时输出目录中的归档不受影响

测试要点：
- test_install_copies_artifact: 正常安装
- test_install_overwrites: 同名覆盖
- test_install_unwritable: 目录不可写 → InstallWriteError
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from pathlib import Path

from ..interfaces import IInstaller, InstallWriteError

logger = logging.getLogger(__name__)


class Installer(IInstaller):
    """安装器实现"""

    def install(self, artifact: Path, install_dir: Path) -> Path:
        """复制归档到扩展目录"""
        if not artifact.is_file():
            raise InstallWriteError(f"归档不存在: {artifact}")

        target = install_dir / artifact.name
        tmp_path = install_dir / f".{artifact.name}.{uuid.uuid4().hex[:8]}.tmp"
        try:
            install_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(artifact, tmp_path)
            os.replace(tmp_path, target)
        except OSError as e:
            self._discard(tmp_path)
            raise InstallWriteError(f"无法安装到 {install_dir}: {e}") from e

        logger.info(f"已安装: {target}")
        return target

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug(f"临时文件删除失败: {path}: {e}")
