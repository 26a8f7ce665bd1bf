"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from brand_automation.core.exceptions import BatchError, ConfigError

PRIMARY_ICON_ID = "icon"
PRIMARY_ICON_IMAGE = "icon.png"


def _require_text(owner: str, **values: str) -> None:
    for name, value in values.items():
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"{owner}: {name} 不能为空", key=name, kind="invalid-value")


@dataclass(frozen=True, slots=True)
class Book:
    """描述文件中声明的一本书，id 用于生成输出文件名。"""

    id: str
    cover: str
    title: str

    def __post_init__(self) -> None:
        _require_text("book", id=self.id, cover=self.cover, title=self.title)


@dataclass(frozen=True, slots=True)
class Icon:
    """需要生成的图标，image 为相对项目源目录的路径。"""

    id: str
    image: str

    def __post_init__(self) -> None:
        _require_text("icon", id=self.id, image=self.image)


@dataclass(frozen=True, slots=True)
class ProjectDescriptor:
    """校验后的项目元数据，构造后不可变。"""

    name: str
    description: str
    source: str
    url: str
    books: tuple[Book, ...] = ()
    icons: tuple[Icon, ...] = ()

    def __post_init__(self) -> None:
        _require_text(
            "project",
            name=self.name,
            description=self.description,
            source=self.source,
            url=self.url,
        )
        object.__setattr__(self, "books", tuple(self.books))
        object.__setattr__(self, "icons", tuple(self.icons))


@dataclass(slots=True)
class PipelineOutcome:
    """单个项目流水线的结果。"""

    project: str
    error: Optional[BaseException] = None
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class BatchResult:
    """一次批处理的汇总结果，outcomes 按派发顺序排列。"""

    outcomes: list[PipelineOutcome] = field(default_factory=list)
    elapsed: float = 0.0

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def failures(self) -> list[PipelineOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    @property
    def succeeded(self) -> list[PipelineOutcome]:
        return [outcome for outcome in self.outcomes if outcome.succeeded]

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def error(self) -> Optional[BatchError]:
        """汇总错误：第一个失败为主，其余作为关联原因。"""

        failures = self.failures
        if not failures:
            return None
        return BatchError(failures)

    def raise_for_failures(self) -> None:
        error = self.error
        if error is not None:
            raise error

