"""
描述文件加载器 - 读取项目根目录下的 extension.yml

职责：
- 解析YAML并校验为 PackageDescriptor
- 缺失/不可读 → ManifestNotFoundError
- 格式错误/字段缺失 → ManifestParseError（逐字段说明）

使用方式：
    descriptor = load_manifest(Path("my-extension"))
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from ..interfaces import IManifestLoader, ManifestNotFoundError, ManifestParseError
from ..models import PackageDescriptor

MANIFEST_FILENAME = "extension.yml"


def _format_validation_errors(exc: ValidationError) -> list[str]:
    """pydantic 错误 → "字段: 原因" 列表"""
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
        if err.get("type") == "missing":
            messages.append(f"{field}: 必填字段缺失")
        else:
            messages.append(f"{field}: {err.get('msg', '校验失败')}")
    return messages


class ManifestLoader(IManifestLoader):
    """extension.yml 加载器（每次运行读取一次，不缓存）"""

    def __init__(self, filename: str = MANIFEST_FILENAME):
        self.filename = filename

    def load(self, project_root: Path) -> PackageDescriptor:
        """读取并校验描述文件"""
        path = Path(project_root) / self.filename
        if not path.is_file():
            raise ManifestNotFoundError(
                f"{project_root} 不是 Deckboard 扩展项目，未找到 {self.filename}"
            )

        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ManifestParseError(f"{self.filename} 不是有效的UTF-8文本") from e
        except OSError as e:
            raise ManifestNotFoundError(f"{self.filename} 无法读取: {e}") from e

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ManifestParseError(f"{self.filename} YAML格式错误: {e}") from e

        if not isinstance(data, dict):
            raise ManifestParseError(f"{self.filename} 顶层必须是键值映射")

        try:
            return PackageDescriptor(**{str(k): v for k, v in data.items()})
        except ValidationError as e:
            raise ManifestParseError(
                f"{self.filename} 字段校验失败", _format_validation_errors(e)
            ) from e


# 便捷函数
def load_manifest(project_root: str | Path) -> PackageDescriptor:
    """加载项目描述"""
    return ManifestLoader().load(Path(project_root))
