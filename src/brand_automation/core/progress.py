"""批处理进度的数据模型。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class ProgressUpdate:
    """某个项目结束时发出的进度信息。"""

    total: int
    completed: int
    failed: int = 0
    project: Optional[str] = None
    message: Optional[str] = None
    status: str = "running"  # running | failed | done
