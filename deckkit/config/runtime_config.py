"""
运行期配置 - 读取 config/deckkit_runtime.yaml

职责：
- 加载输出/工作区/安装目录、归档与复制参数
- 提供环境变量覆盖机制（DECKKIT_ 前缀，__ 分隔嵌套）
- 解析为流水线使用的显式路径（PipelinePaths）
"""

from __future__ import annotations

import hashlib
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

from ..interfaces import PipelineConfigError

DEFAULT_RUNTIME_YAML = Path("config/deckkit_runtime.yaml")
USER_RUNTIME_YAML = Path.home() / ".deckkit" / "runtime.yaml"


def default_install_dir() -> Path:
    """Deckboard 扩展目录（Windows/macOS/Linux 均为 ~/deckboard/extensions）"""
    return Path.home() / "deckboard" / "extensions"


def default_workspace_root() -> Path:
    return Path(tempfile.gettempdir()) / "deckkit"


class PathsConfig(BaseModel):
    """路径配置"""

    output_dir: Path = Path("dist")  # 相对项目根目录
    workspace_root: Path = Field(default_factory=default_workspace_root)
    install_dir: Path = Field(default_factory=default_install_dir)


class ArchiveConfig(BaseModel):
    """归档配置"""

    extension: str = ".asar"
    integrity: bool = True
    block_size: int = Field(default=4 * 1024 * 1024, ge=1024)


class StagingConfig(BaseModel):
    """复制配置"""

    max_workers: int = Field(default=4, ge=1)
    extra_excludes: list[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """日志配置"""

    log_level: str = "INFO"
    log_to_file: bool = False
    log_file: Path = Path("logs/deckkit.log")


@dataclass(frozen=True)
class PipelinePaths:
    """单次运行的显式路径（流水线不再读取全局状态）"""

    project_root: Path
    output_dir: Path
    workspace_root: Path
    install_dir: Path

    def workspace_for(self, package: str) -> Path:
        """工作区路径：<workspace_root>/<package>-<项目路径摘要>.staging

        不同项目即使包名相同也不会共用工作区。
        """
        digest = hashlib.sha1(os.fsencode(self.project_root)).hexdigest()[:8]
        return self.workspace_root / f"{package}-{digest}.staging"

    def artifact_path(self, package: str, extension: str) -> Path:
        return self.output_dir / f"{package}{extension}"

    def validate_layout(self) -> None:
        """工作区必须位于项目目录与输出目录之外"""
        ws = self.workspace_root.resolve()
        for label, root in (("项目目录", self.project_root), ("输出目录", self.output_dir)):
            root = root.resolve()
            if ws == root or root in ws.parents:
                raise PipelineConfigError(f"工作区根目录 {ws} 不能位于{label} {root} 内")


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)
    staging: StagingConfig = Field(default_factory=StagingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {
        "env_prefix": "DECKKIT_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置（文件不存在时返回默认配置）"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            paths=PathsConfig(**cls._extract(runtime_opts, "paths")),
            archive=ArchiveConfig(**cls._extract(runtime_opts, "archive")),
            staging=StagingConfig(**cls._extract(runtime_opts, "staging")),
            logging=LoggingConfig(**cls._extract(runtime_opts, "logging")),
        )

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置（支持 {default: x} 写法）"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对路径配置为绝对路径（基于配置文件所在目录）

        output_dir 保持相对项目根目录，不在此解析。
        """
        ws = self.paths.workspace_root.expanduser()
        if not ws.is_absolute():
            ws = (base_dir / ws).resolve()
        self.paths.workspace_root = ws

        install_dir = self.paths.install_dir.expanduser()
        if not install_dir.is_absolute():
            install_dir = (base_dir / install_dir).resolve()
        self.paths.install_dir = install_dir

        log_file = self.logging.log_file.expanduser()
        if not log_file.is_absolute():
            self.logging.log_file = (base_dir / log_file).resolve()

    def pipeline_paths(self, project_root: str | Path) -> PipelinePaths:
        """解析为单次运行的显式路径"""
        root = Path(project_root).expanduser().resolve()
        output_dir = self.paths.output_dir.expanduser()
        if not output_dir.is_absolute():
            output_dir = root / output_dir
        return PipelinePaths(
            project_root=root,
            output_dir=output_dir,
            workspace_root=self.paths.workspace_root.expanduser().resolve(),
            install_dir=self.paths.install_dir.expanduser().resolve(),
        )


# 全局配置实例
_config: RuntimeConfig | None = None


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        default_path = DEFAULT_RUNTIME_YAML
        if not default_path.exists() and USER_RUNTIME_YAML.exists():
            default_path = USER_RUNTIME_YAML
        _config = RuntimeConfig.from_yaml(default_path)
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or DEFAULT_RUNTIME_YAML
    _config = RuntimeConfig.from_yaml(path)
    return _config
