"""
阶段报告 - 复制/裁剪阶段的统计结果
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from ..interfaces import PruneGraphAmbiguousWarning, PruneIOError


@dataclass
class ExcludedEntry:
    """被排除的条目"""
    path: str
    rule: str
    is_dir: bool = False


@dataclass
class StageReport:
    """复制统计"""
    workspace: Path
    files_copied: int = 0
    dirs_created: int = 0
    bytes_copied: int = 0
    excluded: list[ExcludedEntry] = field(default_factory=list)


@dataclass
class PruneReport:
    """裁剪报告"""
    removed: list[str] = field(default_factory=list)
    ambiguous: list[PruneGraphAmbiguousWarning] = field(default_factory=list)
    degraded: list[PruneIOError] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed)

    def warning_messages(self) -> list[str]:
        messages = [f"依赖图不明确，保留 {w}" for w in self.ambiguous]
        messages.extend(f"残留清理失败（降级继续）: {e}" for e in self.degraded)
        return messages
