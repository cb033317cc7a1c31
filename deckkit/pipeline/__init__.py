"""
流水线模块 - 阶段编排与执行

子模块：
- stages: 流水线各阶段定义
- events: 进度事件通道
- executor: 流水线执行器
- installer: 安装到扩展目录
"""

from .events import EventSink, ProgressChannel, QueueSink
from .executor import PipelineExecutor
from .installer import Installer
from .stages import BUILD_STAGES, INSTALL_STAGE, PipelineStage, stages_for

__all__ = [
    "PipelineStage",
    "BUILD_STAGES",
    "INSTALL_STAGE",
    "stages_for",
    "PipelineExecutor",
    "ProgressChannel",
    "QueueSink",
    "EventSink",
    "Installer",
]
