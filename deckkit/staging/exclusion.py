"""
排除规则集 - 决定项目条目是否复制到工作区

职责：
1. 按类别定义有序的路径匹配规则
2. 目录命中时整棵子树跳过（由复制器保证不下探）
3. 保留根目录唯一的 README.md

规则均作用于项目相对路径（POSIX），与项目所在的绝对路径无关。

测试要点：
- test_default_rules_categories: 各类别命中
- test_readme_retained: 仅根 README.md 保留
- test_build_output_root_only: dist/coverage 仅在根目录排除
- test_extra_patterns: 配置追加的 glob 规则
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import PurePosixPath
from typing import Iterable, Iterator


class RuleCategory(str, Enum):
    """排除规则类别"""
    VCS = "vcs"
    EDITOR = "editor"
    DEP_CACHE = "dependency_cache"
    BUILD_OUTPUT = "build_output"
    TESTS = "tests"
    LINT = "lint_format"
    DOCS = "docs"
    LOGS = "logs"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ExclusionRule:
    """单条排除规则

    patterns 默认匹配条目名（最后一段）；match_path=True 时匹配完整相对路径。
    """
    name: str
    category: RuleCategory
    patterns: tuple[str, ...]
    dirs_only: bool = False
    files_only: bool = False
    root_only: bool = False
    parent: str | None = None
    keep: tuple[str, ...] = ()
    ignore_case: bool = False
    match_path: bool = False

    def matches(self, rel_path: PurePosixPath, is_dir: bool) -> bool:
        if self.dirs_only and not is_dir:
            return False
        if self.files_only and is_dir:
            return False
        if self.root_only and len(rel_path.parts) != 1:
            return False
        if self.parent is not None:
            if len(rel_path.parts) < 2 or rel_path.parts[-2] != self.parent:
                return False
        if rel_path.as_posix() in self.keep:
            return False

        subject = rel_path.as_posix() if self.match_path else rel_path.name
        if self.ignore_case:
            subject = subject.lower()
            return any(fnmatchcase(subject, p.lower()) for p in self.patterns)
        return any(fnmatchcase(subject, p) for p in self.patterns)


DEFAULT_RULES: tuple[ExclusionRule, ...] = (
    # 版本控制
    ExclusionRule("vcs-dirs", RuleCategory.VCS, (".git", ".svn", ".hg", ".github"), dirs_only=True),
    ExclusionRule(
        "vcs-files",
        RuleCategory.VCS,
        (".git", ".gitignore", ".gitattributes", ".gitmodules", ".npmignore", ".travis.yml"),
        files_only=True,
    ),
    # 编辑器/IDE
    ExclusionRule("editor-dirs", RuleCategory.EDITOR, (".vscode", ".idea"), dirs_only=True),
    ExclusionRule(
        "editor-files",
        RuleCategory.EDITOR,
        (".DS_Store", "Thumbs.db", ".editorconfig", "*.swp"),
        files_only=True,
    ),
    # 依赖管理器缓存
    ExclusionRule("node-cache", RuleCategory.DEP_CACHE, (".cache", ".bin"), parent="node_modules"),
    # 历史构建产物
    ExclusionRule("build-output", RuleCategory.BUILD_OUTPUT, ("dist", "coverage"), dirs_only=True, root_only=True),
    # 测试
    ExclusionRule("test-dirs", RuleCategory.TESTS, ("test", "tests", "__tests__"), dirs_only=True),
    ExclusionRule(
        "test-files",
        RuleCategory.TESTS,
        ("*.test.js", "*.spec.js", "jest.config.js"),
        files_only=True,
    ),
    # lint/格式化配置
    ExclusionRule(
        "lint-config",
        RuleCategory.LINT,
        (".eslintrc*", ".eslintignore", ".prettierrc*", ".prettierignore", "tsconfig.json"),
        files_only=True,
    ),
    # 文档（保留根 README.md）
    ExclusionRule(
        "docs",
        RuleCategory.DOCS,
        ("*.md",),
        files_only=True,
        keep=("README.md",),
        ignore_case=True,
    ),
    # 日志
    ExclusionRule("logs", RuleCategory.LOGS, ("*.log",), files_only=True),
)


class ExclusionRuleSet:
    """有序排除规则集（首条命中即生效）"""

    def __init__(self, rules: Iterable[ExclusionRule] = DEFAULT_RULES):
        self._rules: tuple[ExclusionRule, ...] = tuple(rules)

    @classmethod
    def default(cls) -> ExclusionRuleSet:
        return cls(DEFAULT_RULES)

    def __iter__(self) -> Iterator[ExclusionRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def match(self, rel_path: PurePosixPath | str, is_dir: bool) -> ExclusionRule | None:
        """返回第一条命中的规则，未命中返回None"""
        rel = PurePosixPath(rel_path)
        for rule in self._rules:
            if rule.matches(rel, is_dir):
                return rule
        return None

    def is_excluded(self, rel_path: PurePosixPath | str, is_dir: bool) -> bool:
        return self.match(rel_path, is_dir) is not None

    def with_patterns(self, patterns: Iterable[str]) -> ExclusionRuleSet:
        """追加自定义 glob（匹配完整相对路径或条目名）"""
        extra = []
        for pattern in patterns:
            pattern = pattern.strip().strip("/")
            if not pattern:
                continue
            match_path = "/" in pattern
            extra.append(
                ExclusionRule(f"custom:{pattern}", RuleCategory.CUSTOM, (pattern,), match_path=match_path)
            )
        return ExclusionRuleSet((*self._rules, *extra))

    def with_output_dir(self, rel_output: PurePosixPath | str) -> ExclusionRuleSet:
        """排除位于项目内的输出目录（非默认 dist 时）"""
        rel = PurePosixPath(rel_output)
        rule = ExclusionRule(
            f"output:{rel.as_posix()}",
            RuleCategory.BUILD_OUTPUT,
            (rel.as_posix(),),
            dirs_only=True,
            match_path=True,
        )
        return ExclusionRuleSet((*self._rules, rule))
