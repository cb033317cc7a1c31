"""
工作区处理模块 - 复制与裁剪

子模块：
- exclusion: 排除规则集
- workspace: 工作区创建/销毁
- stager: 项目树 → 工作区复制
- dependency_graph: node_modules 依赖分类
- pruner: 仅开发依赖与残留清理
"""

from .dependency_graph import DependencyGraph
from .exclusion import DEFAULT_RULES, ExclusionRule, ExclusionRuleSet, RuleCategory
from .pruner import Pruner
from .stager import Stager
from .workspace import destroy_workspace, prepare_workspace, remove_path

__all__ = [
    "ExclusionRule",
    "ExclusionRuleSet",
    "RuleCategory",
    "DEFAULT_RULES",
    "Stager",
    "DependencyGraph",
    "Pruner",
    "prepare_workspace",
    "destroy_workspace",
    "remove_path",
]
