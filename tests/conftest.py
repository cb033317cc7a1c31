"""
pytest 配置与公共 fixtures

使用方式：
    def test_something(sample_project, pipeline_paths):
        run = PipelineExecutor(pipeline_paths).build()
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from deckkit.config import PipelinePaths, RuntimeConfig
from deckkit.config.runtime_config import PathsConfig


def write_tree(root: Path, files: dict[str, str | bytes | dict]) -> Path:
    """按 {相对路径: 内容} 创建文件树（dict 内容写为 JSON）"""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, dict):
            path.write_text(json.dumps(content), encoding="utf-8")
        elif isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


def list_tree(root: Path) -> set[str]:
    """目录下所有文件的相对路径"""
    return {p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file()}


EXTENSION_YML = """\
name: Demo Extension
package: demo-ext
version: 1.0.0
description: Demo extension for tests
author: tester
license: MIT
repository: https://example.com/demo-ext.git
"""


# ============================================================================
# 文件 Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """临时目录"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def make_tree() -> Callable[[Path, dict], Path]:
    """文件树构造器"""
    return write_tree


@pytest.fixture
def tree_files() -> Callable[[Path], set[str]]:
    """文件树列举器"""
    return list_tree


@pytest.fixture
def sample_project(temp_dir: Path) -> Path:
    """示例扩展项目

    leftpad 为生产依赖，eslint 为开发依赖；
    另含 .git/、test/ 与 README.md。
    """
    root = temp_dir / "demo-ext"
    write_tree(
        root,
        {
            "extension.yml": EXTENSION_YML,
            "package.json": {
                "name": "demo-ext",
                "version": "1.0.0",
                "dependencies": {"leftpad": "^1.0.0"},
                "devDependencies": {"eslint": "^8.0.0"},
            },
            "index.js": "module.exports = require('leftpad');\n",
            "README.md": "# Demo\n",
            ".git/HEAD": "ref: refs/heads/main\n",
            ".git/config": "[core]\n",
            "test/spec.js": "// spec\n",
            "node_modules/leftpad/package.json": {"name": "leftpad", "version": "1.3.0"},
            "node_modules/leftpad/index.js": "module.exports = (s) => s;\n",
            "node_modules/eslint/package.json": {"name": "eslint", "version": "8.57.0"},
            "node_modules/eslint/lib/api.js": "// eslint\n",
        },
    )
    return root


# ============================================================================
# 配置 Fixtures
# ============================================================================

@pytest.fixture
def runtime_config(temp_dir: Path) -> RuntimeConfig:
    """运行期配置（工作区与扩展目录均位于临时目录）"""
    return RuntimeConfig(
        paths=PathsConfig(
            output_dir=Path("dist"),
            workspace_root=temp_dir / "workspaces",
            install_dir=temp_dir / "deckboard" / "extensions",
        )
    )


@pytest.fixture
def pipeline_paths(runtime_config: RuntimeConfig, sample_project: Path) -> PipelinePaths:
    """示例项目的流水线路径"""
    return runtime_config.pipeline_paths(sample_project)
