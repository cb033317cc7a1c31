"""
包描述模型 - extension.yml 的结构化表示

对应 extension.yml 字段：name/package/version/description/author/license/repository
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Windows 文件名非法字符 + 路径分隔符
_FORBIDDEN_CHARS = set('/\\<>:"|?*\0')


class PackageDescriptor(BaseModel):
    """包描述（加载后不可变）"""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1, description="扩展显示名称")
    package: str = Field(..., description="包标识（归档文件名主干）")
    version: str = Field(..., min_length=1, description="版本号")
    description: str = Field(..., description="描述")
    author: str = Field(..., description="作者")
    license: str = Field(..., description="许可证")
    repository: str | None = Field(None, description="仓库地址（可选）")

    @field_validator("name", "package", "version", "description", "author", "license", mode="before")
    @classmethod
    def _coerce_scalar(cls, value: Any) -> Any:
        # YAML 会把 1.0 / 2 解析为数字
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("package")
    @classmethod
    def _check_package(cls, value: str) -> str:
        if not value:
            raise ValueError("package 不能为空")
        if value in (".", ".."):
            raise ValueError(f"package 不能为 {value!r}")
        bad = sorted(set(value) & _FORBIDDEN_CHARS)
        if bad:
            raise ValueError(f"package 含有非法字符: {''.join(bad)!r}")
        return value

    @field_validator("repository", mode="before")
    @classmethod
    def _empty_repository(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        return value
