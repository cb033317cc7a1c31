"""
deckkit - Deckboard 扩展打包工具核心模块

模块结构：
- config/     运行期配置与 extension.yml 解析
- models/     数据模型定义
- staging/    工作区复制（排除规则）与依赖裁剪
- archive/    asar 归档写入与读取
- pipeline/   流水线编排、进度事件与安装
- cli         命令行入口
"""

__version__ = "0.1.0"
