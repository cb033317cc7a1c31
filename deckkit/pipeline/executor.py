"""
流水线执行器 - 编排各阶段执行

职责：
1. 按顺序执行各阶段（IDLE→LOADING→STAGING→PRUNING→ARCHIVING→(INSTALLING)→DONE）
2. 推送进度事件
3. 首个致命错误即中止后续阶段，尽力清理工作区，向调用方抛出唯一的 PipelineError

测试要点：
- test_build_success: 完整构建
- test_manifest_missing: 描述文件缺失 → 不创建输出目录
- test_stage_failure_cleanup: 阶段失败后工作区被删除
- test_install_failure_preserves_artifact: 安装失败不影响归档
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..archive import Archiver
from ..config import ManifestLoader, PipelinePaths, RuntimeConfig
from ..interfaces import (
    DeckKitError,
    IArchiver,
    IInstaller,
    IManifestLoader,
    IPruner,
    IStager,
    PipelineError,
    StageCopyError,
)
from ..models import BuildRun, DependencyClassification, EventLevel, PipelineState
from ..staging import (
    DependencyGraph,
    ExclusionRuleSet,
    Pruner,
    Stager,
    destroy_workspace,
    prepare_workspace,
)
from .events import EventSink, ProgressChannel
from .installer import Installer
from .stages import PipelineStage, stages_for

logger = logging.getLogger(__name__)


class PipelineExecutor:
    """流水线执行器

    所有路径在构造时显式传入，执行期间不读取全局状态。
    """

    def __init__(
        self,
        paths: PipelinePaths,
        *,
        config: RuntimeConfig | None = None,
        sink: EventSink | None = None,
        rules: ExclusionRuleSet | None = None,
        loader: IManifestLoader | None = None,
        stager: IStager | None = None,
        pruner: IPruner | None = None,
        archiver: IArchiver | None = None,
        installer: IInstaller | None = None,
    ):
        paths.validate_layout()
        self.paths = paths
        self.config = config or RuntimeConfig()
        self.sink = sink
        self.extension = self.config.archive.extension
        self.rules = rules or self._build_rules()

        self.loader = loader or ManifestLoader()
        self.stager = stager or Stager(max_workers=self.config.staging.max_workers)
        self.pruner = pruner or Pruner()
        self.archiver = archiver or Archiver(
            integrity=self.config.archive.integrity,
            block_size=self.config.archive.block_size,
        )
        self.installer = installer or Installer()

    def _build_rules(self) -> ExclusionRuleSet:
        rules = ExclusionRuleSet.default().with_patterns(self.config.staging.extra_excludes)
        # 输出目录位于项目内时排除之
        try:
            rel_output = self.paths.output_dir.resolve().relative_to(self.paths.project_root.resolve())
        except ValueError:
            return rules
        if rel_output.parts:
            rules = rules.with_output_dir(rel_output.as_posix())
        return rules

    # === 入口 ===

    def build(self) -> BuildRun:
        """构建：LOADING→STAGING→PRUNING→ARCHIVING"""
        return self.execute(install=False)

    def build_and_install(self) -> BuildRun:
        """构建并安装"""
        return self.execute(install=True)

    def execute(self, install: bool = False) -> BuildRun:
        """执行流水线"""
        run = BuildRun(project_root=self.paths.project_root, install=install)
        channel = ProgressChannel(run, self.sink)
        context: dict[str, Any] = {}
        current: PipelineStage | None = None

        try:
            for stage in stages_for(install):
                current = stage
                self._execute_stage(run, channel, stage, context)
        except Exception as e:
            stage_name = current.name if current else PipelineState.IDLE.value
            if isinstance(e, DeckKitError):
                logger.error(f"[{run.run_id}] 阶段失败 {stage_name}: {e}")
            else:
                logger.exception(f"[{run.run_id}] 流水线执行失败: {stage_name}")
            run.mark_failed(str(e))
            channel.emit(stage_name, f"任务失败: {e}", EventLevel.ERROR)
            self._cleanup(run, context)
            channel.close()
            raise PipelineError(stage_name, e, run) from e

        self._cleanup(run, context)
        run.mark_done()
        channel.advance(100)
        channel.emit(PipelineState.DONE.value, "打包完成")
        channel.close()
        return run

    def _execute_stage(
        self,
        run: BuildRun,
        channel: ProgressChannel,
        stage: PipelineStage,
        context: dict[str, Any],
    ) -> None:
        """执行单个阶段"""
        run.transition(stage.state)
        logger.info(f"[{run.run_id}] 开始阶段: {stage.name}")
        channel.advance(stage.progress_start)
        channel.emit(stage.name, stage.title)

        if stage.state == PipelineState.LOADING:
            self._stage_load(run, channel, context)

        elif stage.state == PipelineState.STAGING:
            self._stage_copy(run, channel, context)

        elif stage.state == PipelineState.PRUNING:
            self._stage_prune(run, channel, context)

        elif stage.state == PipelineState.ARCHIVING:
            self._stage_archive(run, channel, context)

        elif stage.state == PipelineState.INSTALLING:
            self._stage_install(run, channel, context)

        channel.advance(stage.progress_end)
        logger.info(f"[{run.run_id}] 完成阶段: {stage.name}")

    # === 各阶段 ===

    def _stage_load(self, run: BuildRun, channel: ProgressChannel, context: dict[str, Any]) -> None:
        """读取 extension.yml"""
        descriptor = self.loader.load(self.paths.project_root)
        run.descriptor = descriptor
        context["workspace"] = self.paths.workspace_for(descriptor.package)
        context["artifact"] = self.paths.artifact_path(descriptor.package, self.extension)
        channel.emit(
            PipelineState.LOADING.value,
            f"{descriptor.name} {descriptor.version} ({descriptor.package})",
        )

    def _stage_copy(self, run: BuildRun, channel: ProgressChannel, context: dict[str, Any]) -> None:
        """复制到工作区"""
        workspace: Path = context["workspace"]
        run.artifacts.workspace = workspace
        channel.emit(PipelineState.STAGING.value, "复制文件到临时目录")
        try:
            prepare_workspace(workspace)
        except OSError as e:
            raise StageCopyError(f"无法准备工作区 {workspace}: {e}", workspace) from e

        report = self.stager.stage(self.paths.project_root, workspace, self.rules)
        channel.emit(
            PipelineState.STAGING.value,
            f"已复制 {report.files_copied} 个文件，排除 {len(report.excluded)} 项",
        )

    def _stage_prune(self, run: BuildRun, channel: ProgressChannel, context: dict[str, Any]) -> None:
        """删除开发依赖与残留文件"""
        workspace: Path = context["workspace"]
        try:
            classification = DependencyGraph.scan(workspace)
        except OSError as e:
            # 盘点失败不改变工作区，降级为仅残留清理
            message = f"依赖图盘点失败，跳过依赖裁剪: {e}"
            logger.warning(message)
            run.add_warning(message)
            channel.emit(PipelineState.PRUNING.value, message, EventLevel.WARNING)
            classification = DependencyClassification()

        report = self.pruner.prune(workspace, classification)
        for message in report.warning_messages():
            run.add_warning(message)
            channel.emit(PipelineState.PRUNING.value, message, EventLevel.WARNING)
        channel.emit(PipelineState.PRUNING.value, f"清理多余文件，删除 {len(report.removed)} 项")

    def _stage_archive(self, run: BuildRun, channel: ProgressChannel, context: dict[str, Any]) -> None:
        """打包"""
        workspace: Path = context["workspace"]
        artifact: Path = context["artifact"]
        channel.emit(PipelineState.ARCHIVING.value, f"打包文件 → {artifact.name}")
        run.artifacts.archive = self.archiver.archive(workspace, artifact)
        channel.emit(PipelineState.ARCHIVING.value, "删除临时目录")

    def _stage_install(self, run: BuildRun, channel: ProgressChannel, context: dict[str, Any]) -> None:
        """安装到扩展目录"""
        artifact: Path = context["artifact"]
        run.artifacts.installed = self.installer.install(artifact, self.paths.install_dir)
        channel.emit(PipelineState.INSTALLING.value, f"已复制到 {self.paths.install_dir}")

    # === 收尾 ===

    def _cleanup(self, run: BuildRun, context: dict[str, Any]) -> None:
        """尽力删除工作区（清理失败只记录日志，不覆盖原始错误）"""
        workspace: Path | None = context.get("workspace")
        if workspace is None:
            return
        try:
            destroy_workspace(workspace)
        except OSError as e:
            logger.error(f"[{run.run_id}] 工作区清理失败: {workspace}: {e}")
