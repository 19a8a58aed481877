"""rockspec 清单规范化核心

模块说明:
- vers.py: 版本号解析与比较
- queries.py: 依赖约束字符串解析
- dirs.py / paths.py: URL 拆分与安装路径布局
- schema.py: 清单结构校验
- platforms.py: 平台覆盖合并
- rockspec.py: 规范化流水线与 Manifest 模型
"""
