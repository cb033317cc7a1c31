"""
裁剪器 - 删除工作区中仅开发期依赖与残留文件

职责：
1. 依赖图裁剪：删除仅开发可达的节点目录
2. 残留清理：缓存/版本控制/IDE 目录、根目录非 README 文档
3. 幂等：已裁剪的工作区再次裁剪不产生变化

失败策略：
- 依赖图裁剪删除失败 → 工作区不一致，抛出致命 PruneIOError
- 残留清理删除失败 → 降级继续，记录为非致命 PruneIOError

测试要点：
- test_prune_dev_only: 仅开发依赖删除
- test_prune_idempotent: 幂等
- test_prune_ambiguous_warning: 元数据损坏节点保留并告警
- test_residual_cleanup: 残留清理
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..interfaces import IPruner, PruneGraphAmbiguousWarning, PruneIOError
from ..models import DependencyClassification, DepType, PruneReport
from .workspace import remove_path

logger = logging.getLogger(__name__)

# 工作区根目录下的已知残留路径
RESIDUAL_PATHS = (
    "node_modules/.cache",
    "node_modules/.bin",
    ".git",
    ".vscode",
    ".idea",
)

RETAINED_README = "README.md"


class Pruner(IPruner):
    """裁剪器实现"""

    def prune(self, workspace: Path, classification: DependencyClassification) -> PruneReport:
        """按依赖分类裁剪工作区"""
        report = PruneReport()
        self._collect_ambiguous(classification, report)
        self._prune_graph(workspace, classification, report)
        self._prune_residual(workspace, report)
        logger.info(f"裁剪完成: 删除 {len(report.removed)} 项, 告警 {len(report.warning_messages())} 条")
        return report

    @staticmethod
    def _collect_ambiguous(classification: DependencyClassification, report: PruneReport) -> None:
        if classification.root_problem:
            if classification.nodes:
                report.ambiguous.append(
                    PruneGraphAmbiguousWarning("package.json", classification.root_problem)
                )
            # 根不可用时不再逐节点告警
            return

        for node in sorted(classification.nodes.values(), key=lambda n: n.path):
            if node.dep_type == DepType.AMBIGUOUS:
                warning = PruneGraphAmbiguousWarning(node.path, node.problem or "元数据不可用")
            elif node.dep_type == DepType.UNREFERENCED:
                warning = PruneGraphAmbiguousWarning(node.path, "未被任何依赖引用")
            else:
                continue
            logger.warning(f"依赖图不明确，保留节点 {warning}")
            report.ambiguous.append(warning)

    @staticmethod
    def _prune_graph(workspace: Path, classification: DependencyClassification, report: PruneReport) -> None:
        protected = classification.protected_paths()

        for node in classification.dev_only():
            target = workspace / node.path
            if not target.exists():
                # 已不存在（父节点已删或此前已裁剪）
                continue

            prefix = node.path + "/"
            nested = [p for p in protected if p.startswith(prefix)]
            if nested:
                warning = PruneGraphAmbiguousWarning(node.path, f"含有需保留的嵌套依赖 {nested[0]}，整体保留")
                logger.warning(f"依赖图不明确，保留节点 {warning}")
                report.ambiguous.append(warning)
                continue

            try:
                remove_path(target)
            except OSError as e:
                raise PruneIOError(f"删除开发依赖失败 {node.path}: {e}", target, fatal=True) from e
            logger.debug(f"删除开发依赖: {node.path}")
            report.removed.append(node.path)

    @staticmethod
    def _prune_residual(workspace: Path, report: PruneReport) -> None:
        targets = [workspace / rel for rel in RESIDUAL_PATHS]
        targets.extend(
            p
            for p in sorted(workspace.iterdir())
            if p.is_file() and p.suffix.lower() == ".md" and p.name != RETAINED_README
        )

        for target in targets:
            if not (target.exists() or target.is_symlink()):
                continue
            rel = target.relative_to(workspace).as_posix()
            try:
                remove_path(target)
            except OSError as e:
                err = PruneIOError(f"残留清理失败 {rel}: {e}", target, fatal=False)
                logger.warning(str(err))
                report.degraded.append(err)
                continue
            logger.debug(f"删除残留: {rel}")
            report.removed.append(rel)
