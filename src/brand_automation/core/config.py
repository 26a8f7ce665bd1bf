"""批处理任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple

from brand_automation.core.exceptions import ConfigError

DEFAULT_MAX_WORKERS = 16


@dataclass(slots=True)
class ToolCommands:
    """外部工具的命令前缀，可以包含包装命令，例如 ("magick", "convert")。"""

    transformer: Sequence[str] = ("saxon",)
    rasterizer: Sequence[str] = ("inkscape",)
    converter: Sequence[str] = ("convert",)


@dataclass(slots=True)
class TemplateConfig:
    """XSLT 样式表与 SVG 模板源文件。"""

    social_stylesheet: Path
    social_source: Path
    book_stylesheet: Path
    book_source: Path

    @classmethod
    def from_source_dir(cls, source_dir: Path) -> "TemplateConfig":
        return cls(
            social_stylesheet=source_dir / "social3.xsl",
            social_source=source_dir / "social3.svg",
            book_stylesheet=source_dir / "book_cover.xsl",
            book_source=source_dir / "book_cover.svg",
        )


@dataclass(slots=True)
class BrandingConfig:
    """单次批处理的配置集合。"""

    source_dir: Path = Path("src")
    output_dir: Path = Path("output")
    projects_dir: Optional[Path] = None
    emblem_path: Optional[Path] = None
    templates: Optional[TemplateConfig] = None
    tools: ToolCommands = field(default_factory=ToolCommands)
    max_workers: int = DEFAULT_MAX_WORKERS
    icon_sizes: Tuple[int, ...] = (16, 32, 48, 64, 128)
    container_sizes: Tuple[int, ...] = (128, 48, 32, 16)
    social_size: Tuple[int, int] = (1280, 640)
    book_size: Tuple[int, int] = (600, 800)
    descriptor_filename: str = "project.xml"

    def __post_init__(self) -> None:
        self.source_dir = Path(self.source_dir).absolute()
        self.output_dir = Path(self.output_dir).absolute()
        if self.projects_dir is None:
            self.projects_dir = self.source_dir / "projects"
        if self.emblem_path is None:
            self.emblem_path = self.source_dir / "emblem18.png"
        if self.templates is None:
            self.templates = TemplateConfig.from_source_dir(self.source_dir)

    def validate(self) -> None:
        if self.max_workers < 1:
            raise ConfigError(
                f"max_workers 必须大于 0: {self.max_workers}",
                key="max_workers",
                kind="invalid-value",
            )
        missing = [size for size in self.container_sizes if size not in self.icon_sizes]
        if missing:
            raise ConfigError(
                f"container_sizes 中的尺寸未生成: {missing}",
                key="container_sizes",
                kind="invalid-value",
            )

    def project_source(self, name: str) -> Path:
        return self.projects_dir / name

    def project_output(self, name: str) -> Path:
        return self.output_dir / name

    def descriptor_path(self, name: str) -> Path:
        return self.project_source(name) / self.descriptor_filename
