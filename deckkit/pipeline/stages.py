"""
流水线阶段定义

职责：
1. 定义各阶段的名称、对应状态与进度区间
2. 构建流水线（LOADING→STAGING→PRUNING→ARCHIVING）与可选安装阶段

测试要点：
- test_build_stage_order: 阶段顺序
- test_install_stage_optional: 安装阶段可选
"""

from __future__ import annotations

from dataclasses import dataclass

from ..models import PipelineState


@dataclass(frozen=True)
class PipelineStage:
    """流水线阶段"""
    state: PipelineState
    title: str           # 阶段标题（进度事件首条消息）
    progress_start: int  # 进度起点（0-100）
    progress_end: int    # 进度终点

    @property
    def name(self) -> str:
        return self.state.value


LOAD_STAGE = PipelineStage(PipelineState.LOADING, "检查包信息", 0, 5)
STAGE_STAGE = PipelineStage(PipelineState.STAGING, "准备文件", 5, 45)
PRUNE_STAGE = PipelineStage(PipelineState.PRUNING, "删除开发依赖", 45, 60)
ARCHIVE_STAGE = PipelineStage(PipelineState.ARCHIVING, "打包扩展文件", 60, 95)
INSTALL_STAGE = PipelineStage(PipelineState.INSTALLING, "复制到扩展目录", 95, 100)

# 构建流水线各阶段
BUILD_STAGES: list[PipelineStage] = [
    LOAD_STAGE,
    STAGE_STAGE,
    PRUNE_STAGE,
    ARCHIVE_STAGE,
]


def stages_for(install: bool) -> list[PipelineStage]:
    """返回本次运行的阶段序列"""
    return [*BUILD_STAGES, INSTALL_STAGE] if install else list(BUILD_STAGES)
