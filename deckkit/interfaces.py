"""
模块接口契约 - 定义各阶段的抽象接口与异常

设计原则：
1. 阶段间通过接口通信，不直接依赖具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和mock替换

使用方式：
    from deckkit.interfaces import IStager

    class MyStager(IStager):
        def stage(self, project_root: Path, workspace: Path, rules: ExclusionRuleSet) -> StageReport:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import DependencyClassification, PackageDescriptor, PruneReport, StageReport
    from .staging.exclusion import ExclusionRuleSet


# ============================================================================
# 阶段接口
# ============================================================================

class IManifestLoader(ABC):
    """描述文件加载器接口 - 读取 extension.yml"""

    @abstractmethod
    def load(self, project_root: Path) -> PackageDescriptor:
        """
        读取并校验项目根目录下的描述文件

        Args:
            project_root: 项目根目录

        Returns:
            校验通过的包描述

        Raises:
            ManifestNotFoundError: 文件不存在或不可读
            ManifestParseError: 格式错误或缺少必填字段
        """
        ...


class IStager(ABC):
    """复制器接口 - 项目树 → 工作区"""

    @abstractmethod
    def stage(self, project_root: Path, workspace: Path, rules: ExclusionRuleSet) -> StageReport:
        """
        按排除规则复制项目到工作区

        Args:
            project_root: 项目根目录
            workspace: 工作区目录（调用前应为空）
            rules: 排除规则集

        Returns:
            复制统计

        Raises:
            StageCopyError: 复制过程中任何I/O失败
        """
        ...


class IPruner(ABC):
    """裁剪器接口 - 删除仅开发期依赖"""

    @abstractmethod
    def prune(self, workspace: Path, classification: DependencyClassification) -> PruneReport:
        """
        按依赖分类裁剪工作区（幂等）

        Args:
            workspace: 工作区目录
            classification: 依赖分类结果

        Returns:
            裁剪报告（删除路径 + 非致命告警）

        Raises:
            PruneIOError: 删除失败导致工作区不一致
        """
        ...


class IArchiver(ABC):
    """归档器接口 - 工作区 → 单文件归档"""

    @abstractmethod
    def archive(self, workspace: Path, output_path: Path) -> Path:
        """
        序列化工作区为归档文件，成功后销毁工作区

        Args:
            workspace: 工作区目录
            output_path: 归档文件路径

        Returns:
            归档文件路径

        Raises:
            ArchiveWriteError: 写入失败（残留文件已删除）
        """
        ...


class IInstaller(ABC):
    """安装器接口 - 归档 → 扩展目录"""

    @abstractmethod
    def install(self, artifact: Path, install_dir: Path) -> Path:
        """
        复制归档到安装目录（同名覆盖）

        Returns:
            安装后的文件路径

        Raises:
            InstallWriteError: 写入失败（输出目录中的归档不受影响）
        """
        ...


# ============================================================================
# 异常定义
# ============================================================================

class DeckKitError(Exception):
    """基础异常"""
    pass


class ManifestNotFoundError(DeckKitError):
    """描述文件不存在或不可读"""
    pass


class ManifestParseError(DeckKitError):
    """描述文件格式错误或字段校验失败"""

    def __init__(self, message: str, field_errors: list[str] | None = None):
        self.field_errors = list(field_errors or [])
        if self.field_errors:
            message = f"{message}: " + "; ".join(self.field_errors)
        super().__init__(message)


class StageCopyError(DeckKitError):
    """复制到工作区失败"""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


class PruneIOError(DeckKitError):
    """裁剪时删除失败

    fatal=True 表示工作区已处于不一致状态，必须中止。
    """

    def __init__(self, message: str, path: Path | None = None, fatal: bool = True):
        self.path = path
        self.fatal = fatal
        super().__init__(message)


class ArchiveWriteError(DeckKitError):
    """归档写入失败"""
    pass


class ArchiveReadError(DeckKitError):
    """归档读取/校验失败"""
    pass


class InstallWriteError(DeckKitError):
    """安装到扩展目录失败"""
    pass


class InvalidTransitionError(DeckKitError):
    """流水线状态非法迁移"""
    pass


class PipelineConfigError(DeckKitError):
    """流水线路径配置非法（如工作区位于项目目录内）"""
    pass


class PipelineError(DeckKitError):
    """流水线聚合错误（唯一的失败出口）"""

    def __init__(self, stage: str, cause: BaseException, run: Any = None):
        self.stage = stage
        self.cause = cause
        self.run = run
        super().__init__(f"阶段 {stage} 失败: {cause}")


class PruneGraphAmbiguousWarning(UserWarning):
    """依赖节点元数据缺失/损坏或不可达，节点保持原样（非致命）"""

    def __init__(self, node: str, reason: str):
        self.node = node
        self.reason = reason
        super().__init__(f"{node}: {reason}")
