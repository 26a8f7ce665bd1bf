"""日志配置与项目上下文日志适配器。"""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional


def setup_logging(level: int = logging.INFO) -> None:
    """初始化项目日志配置。"""

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(threadName)s] %(levelname)s %(name)s: %(message)s",
    )


class ProjectLogger(logging.LoggerAdapter):
    """为每条日志自动加上项目名（以及可选的步骤名）前缀。"""

    def __init__(self, logger: logging.Logger, project: str, step: Optional[str] = None) -> None:
        super().__init__(logger, {"project": project, "step": step})
        self.project = project
        self.step = step

    def for_step(self, step: str) -> "ProjectLogger":
        return ProjectLogger(self.logger, self.project, step)

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {}).update(self.extra)
        if self.step:
            return f"{self.project}: {self.step}: {msg}", kwargs
        return f"{self.project}: {msg}", kwargs
