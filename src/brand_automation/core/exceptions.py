"""项目内使用的自定义异常定义。"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class BrandingError(Exception):
    """基础异常类型。"""


class ConfigError(BrandingError):
    """项目描述文件或运行配置不合法时抛出。

    ``kind`` 取值：``missing-field``（缺少必需键）、``malformed``（无法解析）、
    ``invalid-value``（值为空或冲突）。
    """

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        path: Optional[Path] = None,
        kind: str = "missing-field",
    ) -> None:
        super().__init__(message)
        self.key = key
        self.path = path
        self.kind = kind


class ToolError(BrandingError):
    """外部工具以非零状态退出，或根本无法启动（exit_code 为 None）。"""

    def __init__(self, tool: str, exit_code: Optional[int], step: str) -> None:
        if exit_code is None:
            message = f"{step}: {tool}: 无法启动"
        else:
            message = f"{step}: {tool}: 退出码 {exit_code}"
        super().__init__(message)
        self.tool = tool
        self.exit_code = exit_code
        self.step = step


class FileOperationError(BrandingError):
    """复制、删除、建目录等文件系统操作失败。"""

    def __init__(self, operation: str, path: Path) -> None:
        super().__init__(f"{operation} 失败: {path}")
        self.operation = operation
        self.path = path


class EncodeError(BrandingError):
    """图标合成或打包失败（源图缺失、损坏或编码出错）。"""


class BatchError(BrandingError):
    """批处理中至少一个项目失败。

    ``primary`` 为按派发顺序的第一个失败，``related`` 保存其余失败，均不丢弃。
    """

    def __init__(self, failures: Sequence["PipelineOutcome"]) -> None:  # noqa: F821
        if not failures:
            raise ValueError("BatchError 需要至少一个失败结果")
        names = ", ".join(outcome.project for outcome in failures)
        super().__init__(f"{len(failures)} 个项目失败: {names}")
        self.failures = list(failures)
        self.primary = self.failures[0]
        self.related = self.failures[1:]
        self.__cause__ = self.primary.error
