"""
依赖图与裁剪器单元测试

运行：pytest tests/unit/test_pruner.py -v
"""

import pytest

from deckkit.interfaces import PruneIOError
from deckkit.models import DepType, EdgeKind
from deckkit.staging import DependencyGraph, Pruner
from deckkit.staging import pruner as pruner_module


def _pkg(name: str, **deps) -> dict:
    """构造 package.json 内容"""
    data = {"name": name, "version": "1.0.0"}
    data.update(deps)
    return data


@pytest.fixture
def workspace(temp_dir, make_tree):
    """混合依赖的工作区

    - express(生产) → debug（嵌套 v1）
    - eslint(开发) → chalk、leftpad、debug（顶层 v2）
    - leftpad 同时为生产依赖
    - @types/node 为开发依赖
    """
    return make_tree(
        temp_dir / "ws",
        {
            "package.json": _pkg(
                "app",
                dependencies={"express": "^4", "leftpad": "^1"},
                devDependencies={"eslint": "^8", "@types/node": "^20"},
            ),
            "index.js": "1",
            "README.md": "# app",
            "node_modules/express/package.json": _pkg("express", dependencies={"debug": "^1"}),
            "node_modules/express/node_modules/debug/package.json": _pkg("debug"),
            "node_modules/debug/package.json": _pkg("debug"),
            "node_modules/eslint/package.json": _pkg(
                "eslint", dependencies={"chalk": "^4", "leftpad": "^1", "debug": "^2"}
            ),
            "node_modules/chalk/package.json": _pkg("chalk"),
            "node_modules/leftpad/package.json": _pkg("leftpad"),
            "node_modules/@types/node/package.json": _pkg("@types/node"),
        },
    )


class TestDependencyGraph:
    """依赖图分类测试"""

    def test_classification(self, workspace):
        """测试生产/开发分类与嵌套解析"""
        nodes = DependencyGraph.scan(workspace).nodes
        assert nodes["node_modules/express"].dep_type == DepType.PRODUCTION
        assert nodes["node_modules/express/node_modules/debug"].dep_type == DepType.PRODUCTION
        assert nodes["node_modules/leftpad"].dep_type == DepType.PRODUCTION
        assert nodes["node_modules/eslint"].dep_type == DepType.DEVELOPMENT
        assert nodes["node_modules/chalk"].dep_type == DepType.DEVELOPMENT
        assert nodes["node_modules/debug"].dep_type == DepType.DEVELOPMENT
        assert nodes["node_modules/@types/node"].dep_type == DepType.DEVELOPMENT

    def test_edges_recorded(self, workspace):
        """测试记录依赖来源边"""
        leftpad = DependencyGraph.scan(workspace).nodes["node_modules/leftpad"]
        kinds = {(e.requirer, e.kind) for e in leftpad.required_by}
        assert ("", EdgeKind.PRODUCTION) in kinds
        assert ("node_modules/eslint", EdgeKind.DEVELOPMENT) in kinds

    def test_peer_and_optional_are_production(self, temp_dir, make_tree):
        """测试 peer/optional 依赖视为生产依赖"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg(
                    "app",
                    peerDependencies={"react": "*"},
                    optionalDependencies={"fsevents": "*"},
                ),
                "node_modules/react/package.json": _pkg("react"),
                "node_modules/fsevents/package.json": _pkg("fsevents"),
            },
        )
        nodes = DependencyGraph.scan(ws).nodes
        assert nodes["node_modules/react"].dep_type == DepType.PRODUCTION
        assert nodes["node_modules/fsevents"].dep_type == DepType.PRODUCTION

    def test_corrupt_metadata_ambiguous(self, temp_dir, make_tree):
        """测试 package.json 损坏 → AMBIGUOUS，且不下探嵌套子树"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg("app", devDependencies={"weird": "*"}),
                "node_modules/weird/package.json": "{not json",
                "node_modules/weird/node_modules/inner/package.json": _pkg("inner"),
            },
        )
        classification = DependencyGraph.scan(ws)
        assert classification.nodes["node_modules/weird"].dep_type == DepType.AMBIGUOUS
        assert "node_modules/weird/node_modules/inner" not in classification.nodes

    def test_opaque_production_shields_visible(self, temp_dir, make_tree):
        """测试生产依赖元数据缺失时，其查找链上可见的节点不再判为开发依赖"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg("app", dependencies={"foo": "*"}, devDependencies={"bar": "*"}),
                "node_modules/foo/index.js": "require('bar')",
                "node_modules/bar/package.json": _pkg("bar", dependencies={"baz": "*"}),
                "node_modules/baz/package.json": _pkg("baz"),
            },
        )
        nodes = DependencyGraph.scan(ws).nodes
        assert nodes["node_modules/foo"].dep_type == DepType.AMBIGUOUS
        assert nodes["node_modules/bar"].dep_type == DepType.AMBIGUOUS
        assert "node_modules/foo" in nodes["node_modules/bar"].problem
        assert nodes["node_modules/baz"].dep_type == DepType.AMBIGUOUS

    def test_missing_root_manifest(self, temp_dir, make_tree):
        """测试根 package.json 缺失 → 全部 AMBIGUOUS"""
        ws = make_tree(temp_dir / "ws", {"node_modules/a/package.json": _pkg("a")})
        classification = DependencyGraph.scan(ws)
        assert classification.root_problem
        assert classification.nodes["node_modules/a"].dep_type == DepType.AMBIGUOUS

    def test_no_node_modules(self, temp_dir, make_tree):
        """测试无依赖目录"""
        ws = make_tree(temp_dir / "ws", {"package.json": _pkg("app")})
        assert DependencyGraph.scan(ws).nodes == {}


class TestPruner:
    """裁剪器测试"""

    def test_prune_dev_only(self, workspace, tree_files):
        """测试仅开发依赖删除，生产依赖与共享依赖保留"""
        report = Pruner().prune(workspace, DependencyGraph.scan(workspace))

        assert set(report.removed) >= {
            "node_modules/eslint",
            "node_modules/chalk",
            "node_modules/debug",
            "node_modules/@types/node",
        }
        remaining = tree_files(workspace)
        assert "node_modules/express/package.json" in remaining
        assert "node_modules/express/node_modules/debug/package.json" in remaining
        assert "node_modules/leftpad/package.json" in remaining
        assert not (workspace / "node_modules/eslint").exists()
        assert report.ambiguous == []

    def test_prune_idempotent(self, workspace, tree_files):
        """测试幂等：再次裁剪不产生变化"""
        Pruner().prune(workspace, DependencyGraph.scan(workspace))
        before = tree_files(workspace)

        report = Pruner().prune(workspace, DependencyGraph.scan(workspace))
        assert report.removed == []
        assert not report.changed
        assert tree_files(workspace) == before

    def test_prune_ambiguous_warning(self, temp_dir, make_tree):
        """测试元数据损坏节点保留并告警"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg("app", devDependencies={"weird": "*", "eslint": "*"}),
                "node_modules/weird/package.json": "{not json",
                "node_modules/eslint/package.json": _pkg("eslint"),
            },
        )
        report = Pruner().prune(ws, DependencyGraph.scan(ws))
        assert (ws / "node_modules/weird").exists()
        assert not (ws / "node_modules/eslint").exists()
        assert [w.node for w in report.ambiguous] == ["node_modules/weird"]

    def test_prune_keeps_deps_of_opaque_production(self, temp_dir, make_tree):
        """测试元数据缺失的生产依赖可能需要的开发依赖被保留并告警"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg(
                    "app",
                    dependencies={"foo": "*"},
                    devDependencies={"bar": "*"},
                ),
                "node_modules/foo/index.js": "require('bar')",
                "node_modules/bar/package.json": _pkg("bar"),
            },
        )
        report = Pruner().prune(ws, DependencyGraph.scan(ws))

        assert (ws / "node_modules/bar").exists()
        assert (ws / "node_modules/foo").exists()
        assert "node_modules/bar" not in report.removed
        assert {w.node for w in report.ambiguous} >= {"node_modules/foo", "node_modules/bar"}

    def test_prune_unreferenced_retained(self, temp_dir, make_tree):
        """测试未被引用的节点保留并告警"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg("app"),
                "node_modules/extra/package.json": _pkg("extra"),
            },
        )
        report = Pruner().prune(ws, DependencyGraph.scan(ws))
        assert (ws / "node_modules/extra").exists()
        assert [w.node for w in report.ambiguous] == ["node_modules/extra"]

    def test_prune_missing_root_manifest(self, temp_dir, make_tree):
        """测试根 package.json 缺失时不删除依赖，仅一条告警"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "node_modules/a/package.json": _pkg("a"),
                "node_modules/b/package.json": _pkg("b"),
            },
        )
        report = Pruner().prune(ws, DependencyGraph.scan(ws))
        assert (ws / "node_modules/a").exists()
        assert (ws / "node_modules/b").exists()
        assert len(report.ambiguous) == 1

    def test_dev_node_with_protected_nested(self, temp_dir, make_tree):
        """测试开发节点内含需保留的嵌套节点时整体保留"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg("app", devDependencies={"tool": "*"}),
                "node_modules/tool/package.json": _pkg("tool"),
                "node_modules/tool/node_modules/orphan/package.json": _pkg("orphan"),
            },
        )
        report = Pruner().prune(ws, DependencyGraph.scan(ws))
        assert (ws / "node_modules/tool/node_modules/orphan").exists()
        nodes = {w.node for w in report.ambiguous}
        assert nodes == {"node_modules/tool", "node_modules/tool/node_modules/orphan"}

    def test_residual_cleanup(self, temp_dir, make_tree, tree_files):
        """测试残留清理：缓存/版本控制/非 README 文档"""
        ws = make_tree(
            temp_dir / "ws",
            {
                "package.json": _pkg("app"),
                "README.md": "keep",
                "CHANGELOG.md": "drop",
                ".git/HEAD": "ref",
                ".idea/workspace.xml": "x",
                "node_modules/.bin/eslint": "#!/bin/sh",
                "node_modules/.cache/x": "y",
            },
        )
        report = Pruner().prune(ws, DependencyGraph.scan(ws))
        assert tree_files(ws) == {"package.json", "README.md"}
        assert "CHANGELOG.md" in report.removed
        assert ".git" in report.removed

    def test_graph_delete_failure_is_fatal(self, workspace, monkeypatch):
        """测试依赖删除失败 → 致命 PruneIOError"""

        def fail(path):
            raise OSError("busy")

        monkeypatch.setattr(pruner_module, "remove_path", fail)
        with pytest.raises(PruneIOError) as exc_info:
            Pruner().prune(workspace, DependencyGraph.scan(workspace))
        assert exc_info.value.fatal is True

    def test_residual_failure_degrades(self, temp_dir, make_tree, monkeypatch):
        """测试残留删除失败 → 降级继续"""
        ws = make_tree(
            temp_dir / "ws",
            {"package.json": _pkg("app"), ".git/HEAD": "ref", "NOTES.md": "x"},
        )
        real_remove = pruner_module.remove_path

        def flaky(path):
            if path.name == ".git":
                raise OSError("locked")
            real_remove(path)

        monkeypatch.setattr(pruner_module, "remove_path", flaky)
        report = Pruner().prune(ws, DependencyGraph.scan(ws))
        assert report.removed == ["NOTES.md"]
        assert len(report.degraded) == 1
        assert report.degraded[0].fatal is False
        assert (ws / ".git").exists()
