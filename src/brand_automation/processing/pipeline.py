"""单个项目的生成流水线：社交图片、书籍封面与图标。"""

from __future__ import annotations

import logging
import os
import shutil
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from brand_automation.core.config import BrandingConfig
from brand_automation.core.descriptor import load_descriptor
from brand_automation.core.exceptions import FileOperationError
from brand_automation.core.models import Book, Icon, ProjectDescriptor
from brand_automation.processing.compositor import compose_file
from brand_automation.processing.packager import pack_file
from brand_automation.processing.tools import ToolRunner
from brand_automation.utils.logging import ProjectLogger

LOGGER = logging.getLogger(__name__)

BACKGROUND_COPY = "background.png"
SOCIAL_SVG = "background.svg"
SOCIAL_PNG = "background_generated.png"
SOCIAL_JPEG = "background.jpg"
COVER_SVG = "cover.svg"
COVER_PNG = "cover.png"


class PipelineStage(str, Enum):
    """流水线状态，线性推进，任何步骤失败都进入 FAILED。"""

    START = "start"
    LOAD_DESCRIPTOR = "load-descriptor"
    CREATE_OUTPUT_DIR = "create-output-dir"
    SOCIAL_IMAGE = "social-image"
    BOOK_COVERS = "book-covers"
    ICONS = "icons"
    DONE = "done"
    FAILED = "failed"


class ProjectPipeline:
    """按固定顺序为一个项目生成全部派生产物。

    每一步的输出是下一步的输入，步骤之间没有并发。
    """

    def __init__(
        self,
        project_name: str,
        config: BrandingConfig,
        *,
        logger: Optional[ProjectLogger] = None,
    ) -> None:
        self.project_name = project_name
        self.config = config
        self.logger = logger or ProjectLogger(LOGGER, project_name)
        self.source_dir = config.project_source(project_name).absolute()
        self.output_dir = config.project_output(project_name).absolute()
        self.descriptor: Optional[ProjectDescriptor] = None
        self.stage = PipelineStage.START

    def run(self) -> ProjectDescriptor:
        """执行完整流水线，失败时异常原样向上传播。"""

        self.logger.info("start")
        try:
            self._enter(PipelineStage.LOAD_DESCRIPTOR)
            self.descriptor = load_descriptor(
                self.project_name, self.config.descriptor_path(self.project_name)
            )

            self._enter(PipelineStage.CREATE_OUTPUT_DIR)
            self.logger.info("create directory %s", self.output_dir)
            try:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise FileOperationError("创建目录", self.output_dir) from exc

            self._enter(PipelineStage.SOCIAL_IMAGE)
            self.generate_social_image()

            self._enter(PipelineStage.BOOK_COVERS)
            for book in self.descriptor.books:
                self.generate_book_cover(book)

            self._enter(PipelineStage.ICONS)
            for icon in self.descriptor.icons:
                self.generate_icon(icon)

            self._verify_outputs()
        except Exception as exc:
            failed_at = self.stage
            self.stage = PipelineStage.FAILED
            self.logger.info("failed at %s: %s", failed_at.value, exc)
            raise

        self.stage = PipelineStage.DONE
        self.logger.info("completed")
        return self.descriptor

    def _verify_outputs(self) -> None:
        assert self.descriptor is not None
        for name in final_artifacts(self.descriptor, self.config):
            path = self.output_dir / name
            if not path.is_file():
                raise FileOperationError("校验产物", path)

    def _enter(self, stage: PipelineStage) -> None:
        self.stage = stage
        self.logger.debug("stage %s", stage.value)

    def _tools(self) -> ToolRunner:
        return ToolRunner(self.config.tools, self.output_dir, self.logger)

    def generate_social_image(self) -> Path:
        """背景图 -> SVG 模板 -> 1280x640 PNG -> background.jpg。"""

        assert self.descriptor is not None
        step = "social-image"
        log = self.logger.for_step(step)
        log.info("generating social image")
        templates = self.config.templates
        tools = self._tools()

        background = self.output_dir / BACKGROUND_COPY
        svg = self.output_dir / SOCIAL_SVG
        png = self.output_dir / SOCIAL_PNG
        jpeg = self.output_dir / SOCIAL_JPEG

        self._copy(self.source_dir / "background.png", background, log)
        tools.transform(
            templates.social_stylesheet,
            templates.social_source,
            svg,
            {
                "projectName": self.descriptor.name,
                "projectDescription": self.descriptor.description,
                "projectURL": self.descriptor.url,
            },
            step=f"{step}-svg",
        )
        width, height = self.config.social_size
        tools.rasterize(svg, png, width, height, step=f"{step}-png")
        tools.convert(png, jpeg, step=f"{step}-jpeg")
        self._delete(png, svg, background)
        return jpeg

    def generate_book_cover(self, book: Book) -> Path:
        """书籍封面：复制封面底图，渲染模板，导出 600x800 并转为 <id>.jpeg。"""

        assert self.descriptor is not None
        step = "book-cover"
        log = self.logger.for_step(step)
        log.info("generating book cover %s", book.id)
        templates = self.config.templates
        tools = self._tools()

        background = self.output_dir / BACKGROUND_COPY
        svg = self.output_dir / COVER_SVG
        png = self.output_dir / COVER_PNG
        jpeg = self.output_dir / f"{book.id}.jpeg"

        self._copy(self.source_dir / book.cover, background, log)
        tools.transform(
            templates.book_stylesheet,
            templates.book_source,
            svg,
            {
                "projectName": self.descriptor.name,
                "projectDescription": book.title,
            },
            step=f"{step}-svg",
        )
        width, height = self.config.book_size
        tools.rasterize(svg, png, width, height, step=f"{step}-png")
        tools.convert(png, jpeg, step=f"{step}-jpeg")
        self._delete(background, svg, png)
        return jpeg

    def generate_icon(self, icon: Icon) -> Path:
        """按全部尺寸合成 PNG 图标，再打包为 <id>.ico。"""

        log = self.logger.for_step("icons")
        log.info("generating icons for %s", icon.id)
        source = self.source_dir / icon.image
        created: dict[int, Path] = {}
        for size in self.config.icon_sizes:
            log.info("generating %dx%d icon for %s", size, size, icon.id)
            created[size] = compose_file(
                size,
                source,
                self.config.emblem_path,
                self.output_dir / f"{icon.id}{size}.png",
            )

        container = self.output_dir / f"{icon.id}.ico"
        pack_file([created[size] for size in self.config.container_sizes], container)
        return container

    def _copy(self, source: Path, destination: Path, log: ProjectLogger) -> None:
        log.info("copy %s %s", source, destination)
        tmp_path = destination.with_name(destination.name + ".tmp")
        try:
            shutil.copyfile(source, tmp_path)
            os.replace(tmp_path, destination)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise FileOperationError("复制", source) from exc

    def _delete(self, *paths: Path) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                raise FileOperationError("删除", path) from exc


def run_project(project_name: str, config: BrandingConfig) -> ProjectDescriptor:
    """为单个项目执行流水线。"""

    return ProjectPipeline(project_name, config).run()


def final_artifacts(descriptor: ProjectDescriptor, config: BrandingConfig) -> Iterable[str]:
    """列出一次成功运行后输出目录中应存在的文件名。"""

    yield SOCIAL_JPEG
    for book in descriptor.books:
        yield f"{book.id}.jpeg"
    for icon in descriptor.icons:
        for size in config.icon_sizes:
            yield f"{icon.id}{size}.png"
        yield f"{icon.id}.ico"
