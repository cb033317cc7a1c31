"""
复制器 - 将项目树复制到独占工作区

职责：
1. 递归复制未命中排除规则的条目（目录命中则整棵跳过）
2. 符号链接解引用（复制其实际内容，防止逃逸出工作区）
3. 兄弟文件并行复制；全部完成（或失败）后阶段才结束

测试要点：
- test_stage_respects_exclusions: 排除子树不泄漏、包含条目不丢失
- test_stage_byte_fidelity: 字节级一致
- test_stage_dereferences_symlinks: 符号链接解引用
- test_stage_copy_error: I/O失败 → StageCopyError
"""

from __future__ import annotations

import logging
import os
import shutil
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path, PurePosixPath

from ..interfaces import IStager, StageCopyError
from ..models import ExcludedEntry, StageReport
from .exclusion import ExclusionRuleSet

logger = logging.getLogger(__name__)


class Stager(IStager):
    """复制器实现"""

    def __init__(self, max_workers: int = 4):
        self.max_workers = max(1, max_workers)

    def stage(self, project_root: Path, workspace: Path, rules: ExclusionRuleSet) -> StageReport:
        """按排除规则复制项目到工作区"""
        project_root = Path(project_root)
        if not project_root.is_dir():
            raise StageCopyError(f"项目目录不存在: {project_root}", project_root)

        try:
            workspace.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StageCopyError(f"无法创建工作区 {workspace}: {e}", workspace) from e

        report = StageReport(workspace=workspace)
        jobs: list[tuple[Path, Path, str]] = []

        # 先串行建立目录结构并收集文件，再并行复制文件
        self._walk(
            project_root,
            workspace,
            PurePosixPath(),
            rules,
            report,
            jobs,
            frozenset({os.path.realpath(project_root)}),
        )
        self._copy_files(jobs, report)

        logger.info(
            f"复制完成: {report.files_copied} 个文件, {report.bytes_copied} 字节, "
            f"排除 {len(report.excluded)} 项"
        )
        return report

    def _walk(
        self,
        src_dir: Path,
        dst_dir: Path,
        rel_dir: PurePosixPath,
        rules: ExclusionRuleSet,
        report: StageReport,
        jobs: list[tuple[Path, Path, str]],
        ancestors: frozenset[str],
    ) -> None:
        try:
            with os.scandir(src_dir) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise StageCopyError(f"无法读取目录 {src_dir}: {e}", src_dir) from e

        for entry in entries:
            rel = rel_dir / entry.name
            src = Path(entry.path)
            try:
                # 跟随符号链接判断实际类型
                is_dir = entry.is_dir()
                is_file = entry.is_file()
            except OSError as e:
                raise StageCopyError(f"无法访问 {rel}: {e}", src) from e

            if not is_dir and not is_file:
                if entry.is_symlink():
                    raise StageCopyError(f"悬空符号链接: {rel}", src)
                raise StageCopyError(f"不支持的文件类型: {rel}", src)

            rule = rules.match(rel, is_dir)
            if rule is not None:
                report.excluded.append(ExcludedEntry(rel.as_posix(), rule.name, is_dir))
                logger.debug(f"排除 {rel} (规则 {rule.name})")
                continue

            dst = dst_dir / entry.name
            if is_dir:
                real = os.path.realpath(src)
                if real in ancestors:
                    raise StageCopyError(f"符号链接目录形成循环: {rel}", src)
                try:
                    dst.mkdir()
                except OSError as e:
                    raise StageCopyError(f"无法创建目录 {dst}: {e}", dst) from e
                report.dirs_created += 1
                self._walk(src, dst, rel, rules, report, jobs, ancestors | {real})
            else:
                jobs.append((src, dst, rel.as_posix()))

    def _copy_files(self, jobs: list[tuple[Path, Path, str]], report: StageReport) -> None:
        if not jobs:
            return

        failures: list[tuple[str, OSError]] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures: dict[Future[int], str] = {
                pool.submit(self._copy_file, src, dst): rel for src, dst, rel in jobs
            }
            for future in as_completed(futures):
                rel = futures[future]
                if future.cancelled():
                    continue
                try:
                    size = future.result()
                except OSError as e:
                    failures.append((rel, e))
                    # 首个失败后取消尚未开始的复制
                    for pending in futures:
                        pending.cancel()
                    continue
                report.files_copied += 1
                report.bytes_copied += size

        if failures:
            rel, err = sorted(failures, key=lambda item: item[0])[0]
            raise StageCopyError(f"复制失败 {rel}: {err}", Path(rel)) from err

    @staticmethod
    def _copy_file(src: Path, dst: Path) -> int:
        # copy2 默认跟随符号链接并保留权限位
        shutil.copy2(src, dst)
        return dst.stat().st_size
