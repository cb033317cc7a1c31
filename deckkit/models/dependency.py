"""
依赖分类模型 - node_modules 中每个已安装节点的分类与来源边

节点以工作区相对路径（POSIX）标识，如 node_modules/@scope/pkg/node_modules/dep
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class DepType(str, Enum):
    """依赖分类"""
    PRODUCTION = "production"
    DEVELOPMENT = "development"
    AMBIGUOUS = "ambiguous"         # package.json 缺失/损坏，或可能被这类生产依赖引用
    UNREFERENCED = "unreferenced"   # 没有任何边到达


class EdgeKind(str, Enum):
    """依赖边类型"""
    PRODUCTION = "production"
    DEVELOPMENT = "development"


class DependencyEdge(BaseModel):
    """依赖边：requirer 通过 kind 类型依赖 name"""
    requirer: str = Field(..., description="依赖方节点路径，根为空串")
    name: str = Field(..., description="被依赖包名")
    kind: EdgeKind


class DependencyNode(BaseModel):
    """已安装依赖节点"""
    path: str
    name: str
    version: str | None = None
    dep_type: DepType = DepType.UNREFERENCED
    required_by: list[DependencyEdge] = Field(default_factory=list)
    problem: str | None = Field(None, description="不明确的原因（仅 AMBIGUOUS）")


class DependencyClassification(BaseModel):
    """工作区依赖分类结果"""
    root_problem: str | None = Field(None, description="根 package.json 问题")
    nodes: dict[str, DependencyNode] = Field(default_factory=dict)

    def by_type(self, dep_type: DepType) -> list[DependencyNode]:
        return [n for n in self.nodes.values() if n.dep_type == dep_type]

    def dev_only(self) -> list[DependencyNode]:
        """仅开发期可达的节点（按路径排序）"""
        return sorted(self.by_type(DepType.DEVELOPMENT), key=lambda n: n.path)

    def protected_paths(self) -> list[str]:
        """不可删除的节点路径（生产/模糊/不可达）"""
        return sorted(p for p, n in self.nodes.items() if n.dep_type != DepType.DEVELOPMENT)
