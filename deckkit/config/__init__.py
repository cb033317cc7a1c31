"""
配置层 - 加载运行期配置与项目描述文件

职责：
- 加载 config/deckkit_runtime.yaml（运行期参数，可被环境变量覆盖）
- 加载项目根目录的 extension.yml（包描述）
- 提供类型安全的配置访问接口
"""

from .manifest_loader import MANIFEST_FILENAME, ManifestLoader, load_manifest
from .runtime_config import PipelinePaths, RuntimeConfig, get_config, reload_config

__all__ = [
    "MANIFEST_FILENAME",
    "ManifestLoader",
    "load_manifest",
    "PipelinePaths",
    "RuntimeConfig",
    "get_config",
    "reload_config",
]
