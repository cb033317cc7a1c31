"""
描述文件加载单元测试

运行：pytest tests/unit/test_manifest.py -v
"""

import pytest
from pydantic import ValidationError

from deckkit.config import ManifestLoader, load_manifest
from deckkit.interfaces import ManifestNotFoundError, ManifestParseError
from deckkit.models import PackageDescriptor


class TestManifestLoader:
    """extension.yml 加载器测试"""

    def test_load_sample(self, sample_project):
        """测试加载示例项目"""
        descriptor = ManifestLoader().load(sample_project)
        assert descriptor.name == "Demo Extension"
        assert descriptor.package == "demo-ext"
        assert descriptor.version == "1.0.0"
        assert descriptor.license == "MIT"
        assert descriptor.repository == "https://example.com/demo-ext.git"

    def test_load_manifest_helper(self, sample_project):
        """测试便捷函数接受字符串路径"""
        assert load_manifest(str(sample_project)).package == "demo-ext"

    def test_numeric_version_coerced(self, temp_dir, make_tree):
        """测试 YAML 数字版本转为字符串"""
        make_tree(
            temp_dir,
            {
                "extension.yml": (
                    "name: X\npackage: x\nversion: 1.0\n"
                    "description: d\nauthor: a\nlicense: MIT\n"
                )
            },
        )
        descriptor = ManifestLoader().load(temp_dir)
        assert descriptor.version == "1.0"
        assert descriptor.repository is None

    def test_missing_file(self, temp_dir):
        """测试描述文件缺失"""
        with pytest.raises(ManifestNotFoundError):
            ManifestLoader().load(temp_dir)

    def test_malformed_yaml(self, temp_dir, make_tree):
        """测试 YAML 语法错误"""
        make_tree(temp_dir, {"extension.yml": "name: [unclosed\npackage: x\n"})
        with pytest.raises(ManifestParseError):
            ManifestLoader().load(temp_dir)

    def test_not_a_mapping(self, temp_dir, make_tree):
        """测试顶层不是映射"""
        make_tree(temp_dir, {"extension.yml": "- a\n- b\n"})
        with pytest.raises(ManifestParseError):
            ManifestLoader().load(temp_dir)

    def test_missing_fields_listed(self, temp_dir, make_tree):
        """测试缺失字段逐项列出"""
        make_tree(temp_dir, {"extension.yml": "name: X\nversion: '1'\n"})
        with pytest.raises(ManifestParseError) as exc_info:
            ManifestLoader().load(temp_dir)

        fields = {msg.split(":", 1)[0] for msg in exc_info.value.field_errors}
        assert {"package", "description", "author", "license"} <= fields

    @pytest.mark.parametrize("package", ["", "..", "a/b", "a\\b", "bad:name"])
    def test_invalid_package(self, temp_dir, make_tree, package):
        """测试包标识非法"""
        make_tree(
            temp_dir,
            {
                "extension.yml": (
                    f"name: X\npackage: '{package}'\nversion: '1'\n"
                    "description: d\nauthor: a\nlicense: MIT\n"
                )
            },
        )
        with pytest.raises(ManifestParseError) as exc_info:
            ManifestLoader().load(temp_dir)
        assert any(msg.startswith("package") for msg in exc_info.value.field_errors)


class TestPackageDescriptor:
    """包描述模型测试"""

    def _make(self, **overrides) -> PackageDescriptor:
        data = {
            "name": "Demo",
            "package": "demo-ext",
            "version": "1.0.0",
            "description": "d",
            "author": "a",
            "license": "MIT",
        }
        data.update(overrides)
        return PackageDescriptor(**data)

    def test_empty_repository(self):
        """测试空仓库地址规范化为 None"""
        assert self._make(repository="  ").repository is None

    def test_frozen(self):
        """测试加载后不可修改"""
        descriptor = self._make()
        with pytest.raises(ValidationError):
            descriptor.package = "other"
