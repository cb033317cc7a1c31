"""
构建运行模型 - 定义流水线状态与单次运行生命周期

状态机：IDLE → LOADING → STAGING → PRUNING → ARCHIVING → (INSTALLING) → DONE
任一阶段可迁移到 FAILED；只允许前进或失败，FAILED/DONE 为终态。
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from ..interfaces import InvalidTransitionError
from .descriptor import PackageDescriptor


class PipelineState(str, Enum):
    """流水线状态枚举"""
    IDLE = "IDLE"
    LOADING = "LOADING"
    STAGING = "STAGING"
    PRUNING = "PRUNING"
    ARCHIVING = "ARCHIVING"
    INSTALLING = "INSTALLING"
    DONE = "DONE"
    FAILED = "FAILED"


# 正向顺序（FAILED 不在序列中）
_FORWARD_ORDER = [
    PipelineState.IDLE,
    PipelineState.LOADING,
    PipelineState.STAGING,
    PipelineState.PRUNING,
    PipelineState.ARCHIVING,
    PipelineState.INSTALLING,
    PipelineState.DONE,
]

TERMINAL_STATES = frozenset({PipelineState.DONE, PipelineState.FAILED})


class EventLevel(str, Enum):
    """进度事件级别"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ProgressEvent(BaseModel):
    """进度事件（阶段名 + 可读消息 + 当前进度百分比）"""
    stage: str
    message: str
    level: EventLevel = EventLevel.INFO
    progress: int = Field(default=0, ge=0, le=100)
    timestamp: datetime = Field(default_factory=datetime.now)


class BuildArtifacts(BaseModel):
    """运行产物路径"""
    workspace: Path | None = None
    archive: Path | None = None
    installed: Path | None = None


class BuildRun(BaseModel):
    """单次构建运行"""
    run_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_root: Path
    install: bool = False

    descriptor: PackageDescriptor | None = None
    state: PipelineState = PipelineState.IDLE
    failed_stage: PipelineState | None = None
    progress: int = Field(default=0, ge=0, le=100)

    events: list[ProgressEvent] = Field(default_factory=list)
    artifacts: BuildArtifacts = Field(default_factory=BuildArtifacts)

    warnings: list[str] = Field(default_factory=list, description="非致命告警")
    errors: list[str] = Field(default_factory=list, description="错误信息")

    created_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def transition(self, target: PipelineState) -> None:
        """状态迁移（只允许前进或进入 FAILED）"""
        if self.state in TERMINAL_STATES:
            raise InvalidTransitionError(f"终态不可迁移: {self.state.value} → {target.value}")
        if target == PipelineState.FAILED:
            self.failed_stage = self.state
            self.state = target
            return
        if _FORWARD_ORDER.index(target) <= _FORWARD_ORDER.index(self.state):
            raise InvalidTransitionError(f"非法迁移: {self.state.value} → {target.value}")
        if self.state == PipelineState.IDLE:
            self.started_at = datetime.now()
        self.state = target

    def mark_done(self) -> None:
        """标记为完成"""
        self.transition(PipelineState.DONE)
        self.finished_at = datetime.now()

    def mark_failed(self, error: str) -> None:
        """标记为失败"""
        self.transition(PipelineState.FAILED)
        self.finished_at = datetime.now()
        self.errors.append(error)

    def add_warning(self, warning: str) -> None:
        """添加告警（不中断）"""
        if warning not in self.warnings:
            self.warnings.append(warning)

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.DONE
