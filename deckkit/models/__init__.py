"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- PackageDescriptor: extension.yml 包描述
- BuildRun: 单次构建运行状态与生命周期
- DependencyClassification: node_modules 依赖分类
- StageReport/PruneReport: 阶段统计
"""

from .build_run import (
    BuildArtifacts,
    BuildRun,
    EventLevel,
    PipelineState,
    ProgressEvent,
)
from .dependency import (
    DependencyClassification,
    DependencyEdge,
    DependencyNode,
    DepType,
    EdgeKind,
)
from .descriptor import PackageDescriptor
from .reports import ExcludedEntry, PruneReport, StageReport

__all__ = [
    "PackageDescriptor",
    "BuildRun",
    "BuildArtifacts",
    "PipelineState",
    "ProgressEvent",
    "EventLevel",
    "DependencyClassification",
    "DependencyEdge",
    "DependencyNode",
    "DepType",
    "EdgeKind",
    "StageReport",
    "PruneReport",
    "ExcludedEntry",
]
