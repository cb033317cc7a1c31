"""
依赖图 - 根据 package.json 对 node_modules 中的已安装节点分类

职责：
1. 盘点工作区内所有已安装节点（含 @scope 与嵌套 node_modules）
2. 按 Node 模块解析规则建立依赖边
3. 从根 package.json 出发分别计算生产可达集与开发可达集

分类规则：
- 生产可达（至少一条生产路径）→ PRODUCTION，保留
- 仅开发可达 → DEVELOPMENT，可删除
- package.json 缺失/损坏 → AMBIGUOUS，节点及其嵌套子树保持原样
- 仅经由元数据不可用的生产节点可见（其查找链上的节点）→ AMBIGUOUS，保留
- 无任何边到达 → UNREFERENCED，保留

根 package.json 中 dependencies / optionalDependencies / peerDependencies
为生产边，devDependencies 为开发边；子节点的依赖继承父路径的类型。

测试要点：
- test_classify_prod_and_dev: 基本分类
- test_mixed_reachability_retained: 同时被生产/开发依赖 → 保留
- test_nested_resolution: 嵌套 node_modules 优先解析
- test_corrupt_metadata_ambiguous: 元数据损坏 → AMBIGUOUS
- test_opaque_production_shields_visible: 损坏的生产节点可见范围内的节点保留
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..models import DependencyClassification, DependencyEdge, DependencyNode, DepType, EdgeKind

logger = logging.getLogger(__name__)

NODE_MODULES = "node_modules"
PRODUCTION_FIELDS = ("dependencies", "optionalDependencies", "peerDependencies")
DEVELOPMENT_FIELDS = ("devDependencies",)
_ALL_FIELDS = PRODUCTION_FIELDS + DEVELOPMENT_FIELDS


def read_package_json(path: Path) -> tuple[dict[str, Any] | None, str | None]:
    """读取 package.json，返回 (内容, 问题描述)"""
    if not path.is_file():
        return None, "缺少 package.json"
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        return None, f"package.json 损坏: {e}"
    if not isinstance(data, dict):
        return None, "package.json 顶层不是对象"
    for field in _ALL_FIELDS:
        value = data.get(field)
        if value is not None and not isinstance(value, dict):
            return None, f"package.json 字段 {field} 不是对象"
    return data, None


@dataclass
class _Installed:
    """盘点到的已安装节点"""
    rel: str
    directory: Path
    manifest: dict[str, Any] | None
    problem: str | None


class DependencyGraph:
    """工作区依赖图"""

    def __init__(self, workspace: Path):
        self.workspace = Path(workspace)
        self._installed: dict[str, _Installed] = {}

    @classmethod
    def scan(cls, workspace: Path) -> DependencyClassification:
        """盘点并分类工作区依赖"""
        return cls(workspace).classify()

    # === 盘点 ===

    def _rel(self, path: Path) -> str:
        return path.relative_to(self.workspace).as_posix()

    def _inventory(self, modules_dir: Path) -> None:
        if not modules_dir.is_dir():
            return
        for entry in sorted(modules_dir.iterdir()):
            # .bin / .cache / .package-lock.json 等不是包
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            if entry.name.startswith("@"):
                for scoped in sorted(entry.iterdir()):
                    if scoped.is_dir() and not scoped.name.startswith("."):
                        self._add_installed(scoped)
            else:
                self._add_installed(entry)

    def _add_installed(self, package_dir: Path) -> None:
        manifest, problem = read_package_json(package_dir / "package.json")
        rel = self._rel(package_dir)
        self._installed[rel] = _Installed(rel, package_dir, manifest, problem)
        if problem is None:
            self._inventory(package_dir / NODE_MODULES)
        else:
            # 元数据不可用：嵌套子树整体保持原样，不再下探
            logger.debug(f"依赖节点元数据不可用: {rel}: {problem}")

    # === 解析 ===

    def _resolve(self, from_dir: Path, name: str) -> str | None:
        """Node 模块解析：逐级向上查找 <dir>/node_modules/<name>"""
        current = from_dir
        while True:
            if current.name != NODE_MODULES:
                try:
                    rel = self._rel(current / NODE_MODULES / name)
                except ValueError:
                    # 非法包名（如绝对路径）
                    return None
                if rel in self._installed:
                    return rel
            if current == self.workspace:
                return None
            current = current.parent

    @staticmethod
    def _declared(manifest: dict[str, Any], fields: tuple[str, ...]) -> list[str]:
        names: list[str] = []
        for field in fields:
            for name in (manifest.get(field) or {}):
                if name not in names:
                    names.append(name)
        return names

    def _visible_names(self, directory: Path) -> list[str]:
        """从 directory 出发沿查找链可见的已安装包名（近者优先，同名只取一次）"""
        names: list[str] = []
        current = directory
        while True:
            if current.name != NODE_MODULES:
                prefix = self._rel(current / NODE_MODULES) + "/"
                for rel in self._installed:
                    if not rel.startswith(prefix):
                        continue
                    name = rel[len(prefix):]
                    depth = 1 if name.startswith("@") else 0
                    if name.count("/") == depth and name not in names:
                        names.append(name)
            if current == self.workspace:
                return names
            current = current.parent

    def _reach(
        self,
        roots: list[str],
        kind: EdgeKind,
        edges: dict[str, list[DependencyEdge]],
        through_opaque: bool = False,
    ) -> set[str]:
        """BFS 计算可达集，沿途记录依赖边

        through_opaque=True 时，到达元数据不可用的节点后，
        其查找链上可见的所有节点都视为被它依赖。
        """
        visited: set[str] = set()
        queue: deque[tuple[str, Path, str]] = deque(("", self.workspace, name) for name in roots)

        while queue:
            requirer, requirer_dir, name = queue.popleft()
            target = self._resolve(requirer_dir, name)
            if target is None:
                logger.debug(f"依赖未安装，跳过: {name} (来自 {requirer or 'package.json'})")
                continue

            edge = DependencyEdge(requirer=requirer, name=name, kind=kind)
            bucket = edges.setdefault(target, [])
            if edge not in bucket:
                bucket.append(edge)

            if target in visited:
                continue
            visited.add(target)

            node = self._installed[target]
            if node.manifest is None:
                if through_opaque:
                    for child in self._visible_names(node.directory):
                        queue.append((target, node.directory, child))
                continue
            for child in self._declared(node.manifest, PRODUCTION_FIELDS):
                queue.append((target, node.directory, child))

        return visited

    def _shield_problem(self, required_by: list[DependencyEdge]) -> str:
        for edge in required_by:
            source = self._installed.get(edge.requirer)
            if source is not None and source.manifest is None:
                return f"可能被元数据不可用的生产依赖 {edge.requirer} 引用"
        return "仅经由元数据不可用的生产依赖可达"

    # === 分类 ===

    def classify(self) -> DependencyClassification:
        self._installed.clear()
        self._inventory(self.workspace / NODE_MODULES)

        classification = DependencyClassification()
        for rel, installed in self._installed.items():
            name = rel.rsplit(f"{NODE_MODULES}/", 1)[-1]
            version = installed.manifest.get("version") if installed.manifest else None
            classification.nodes[rel] = DependencyNode(
                path=rel,
                name=name,
                version=str(version) if version is not None else None,
                dep_type=DepType.AMBIGUOUS if installed.problem else DepType.UNREFERENCED,
                problem=installed.problem,
            )

        root_manifest, root_problem = read_package_json(self.workspace / "package.json")
        if root_manifest is None:
            classification.root_problem = root_problem
            if self._installed:
                logger.warning(f"根 package.json 不可用，跳过依赖图裁剪: {root_problem}")
            for node in classification.nodes.values():
                if node.dep_type == DepType.UNREFERENCED:
                    node.dep_type = DepType.AMBIGUOUS
                    node.problem = f"根 {root_problem}"
            return classification

        prod_roots = self._declared(root_manifest, PRODUCTION_FIELDS)
        edges: dict[str, list[DependencyEdge]] = {}
        prod = self._reach(prod_roots, EdgeKind.PRODUCTION, {})
        # 生产路径经过元数据不可用的节点时，其可见范围内的节点都可能被需要
        shielded = self._reach(prod_roots, EdgeKind.PRODUCTION, edges, through_opaque=True) - prod
        dev = self._reach(self._declared(root_manifest, DEVELOPMENT_FIELDS), EdgeKind.DEVELOPMENT, edges)

        for rel, node in classification.nodes.items():
            node.required_by = edges.get(rel, [])
            if node.dep_type == DepType.AMBIGUOUS:
                continue
            if rel in prod:
                node.dep_type = DepType.PRODUCTION
            elif rel in shielded:
                node.dep_type = DepType.AMBIGUOUS
                node.problem = self._shield_problem(node.required_by)
            elif rel in dev:
                node.dep_type = DepType.DEVELOPMENT

        logger.info(
            f"依赖分类: 生产 {len(classification.by_type(DepType.PRODUCTION))}, "
            f"开发 {len(classification.by_type(DepType.DEVELOPMENT))}, "
            f"不明确 {len(classification.by_type(DepType.AMBIGUOUS))}, "
            f"未引用 {len(classification.by_type(DepType.UNREFERENCED))}"
        )
        return classification
