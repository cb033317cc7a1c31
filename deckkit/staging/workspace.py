"""
工作区生命周期 - 创建/清空/销毁

工作区由单次运行独占；开始时发现非空目录一律视为残留并强制清空，
不尝试复用。
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _chmod_and_retry(func, path, _exc) -> None:
    # Windows 下 .git 对象等只读文件需先去掉只读属性
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
    func(path)


def remove_path(path: Path) -> None:
    """删除文件或整棵目录（只读文件强制删除）"""
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    if not path.exists():
        return
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_chmod_and_retry)
    else:
        shutil.rmtree(path, onerror=_chmod_and_retry)


def prepare_workspace(workspace: Path) -> Path:
    """准备空工作区（残留内容无条件清空）"""
    if workspace.exists():
        if workspace.is_dir() and any(workspace.iterdir()):
            logger.warning(f"发现残留工作区，强制清空: {workspace}")
        remove_path(workspace)
    workspace.mkdir(parents=True)
    return workspace


def destroy_workspace(workspace: Path) -> None:
    """销毁工作区"""
    if workspace.exists() or workspace.is_symlink():
        remove_path(workspace)
        logger.debug(f"工作区已删除: {workspace}")
