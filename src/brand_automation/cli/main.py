"""命令行入口。"""

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import List, Optional

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from brand_automation.core.config import DEFAULT_MAX_WORKERS, BrandingConfig, ToolCommands
from brand_automation.core.exceptions import BatchError, ConfigError
from brand_automation.core.progress import ProgressUpdate
from brand_automation.processing.scheduler import run_batch
from brand_automation.utils.logging import setup_logging

app = typer.Typer(help="批量生成项目品牌素材：社交图片、书籍封面与图标。")


def read_manifest(path: Path) -> List[str]:
    """读取项目清单，每行一个项目名，忽略空行与 # 注释。"""

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise typer.BadParameter(f"无法读取项目清单: {path}") from exc
    names = []
    for line in lines:
        name = line.strip()
        if name and not name.startswith("#"):
            names.append(name)
    return names


def _describe(update: ProgressUpdate) -> str:
    if update.status == "done":
        label = "处理完成"
    elif update.project:
        label = f"最近: {update.project}"
    else:
        label = "处理项目"
    if update.failed:
        return f"{label} [red](失败 {update.failed})[/red]"
    return label


def _build_progress_callback(progress: Progress):
    """把批处理进度映射到单个 rich 任务；失败项目以红色单独输出。"""

    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if update.total == 0:
            return
        if task_id is None:
            task_id = progress.add_task(_describe(update), total=update.total)
        progress.update(task_id, completed=update.completed, description=_describe(update))
        if update.status == "failed" and update.project:
            progress.log(f"[red]失败[/red] {update.project}")
        elif update.message:
            progress.log(update.message)

    return callback


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    source_dir: Path = typer.Option(Path("src"), "--source-dir", help="模板、徽标与 projects/ 所在目录"),
    output_dir: Path = typer.Option(Path("output"), "--output-dir", "-o", help="输出根目录"),
    emblem: Optional[Path] = typer.Option(None, "--emblem", help="徽标图片，默认 <source-dir>/emblem18.png"),
    workers: int = typer.Option(DEFAULT_MAX_WORKERS, "--workers", "-w", help="并发线程数量"),
    saxon: str = typer.Option("saxon", "--saxon", help="XSLT 转换命令"),
    inkscape: str = typer.Option("inkscape", "--inkscape", help="SVG 栅格化命令"),
    convert: str = typer.Option("convert", "--convert", help="格式转换命令"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """批量生成项目品牌素材。"""

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_usage(), err=True)
        typer.echo("用法: one <项目名> | all <项目清单文件>", err=True)
        raise typer.Exit(code=2)

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    ctx.obj = BrandingConfig(
        source_dir=source_dir.expanduser(),
        output_dir=output_dir.expanduser(),
        emblem_path=emblem.expanduser().resolve() if emblem else None,
        tools=ToolCommands(
            transformer=shlex.split(saxon),
            rasterizer=shlex.split(inkscape),
            converter=shlex.split(convert),
        ),
        max_workers=workers,
    )


@app.command("one")
def run_one(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="项目名称"),
) -> None:
    """只处理一个项目。"""

    _run(ctx.obj, [project])


@app.command("all")
def run_all(
    ctx: typer.Context,
    manifest: Path = typer.Argument(..., help="项目清单文件，每行一个项目名"),
) -> None:
    """处理清单文件中列出的全部项目。"""

    _run(ctx.obj, read_manifest(manifest))


def _run(config: BrandingConfig, projects: List[str]) -> None:
    logging.getLogger(__name__).debug("CLI 参数解析完成: %d 个项目", len(projects))

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    )

    try:
        with progress:
            result = run_batch(projects, config, progress_callback=_build_progress_callback(progress))
    except ConfigError as exc:
        typer.echo(f"配置错误：{exc}", err=True)
        raise typer.Exit(code=2) from exc

    typer.echo(
        f"处理完成：共 {result.attempted} 个项目，失败 {result.failed} 个，耗时 {result.elapsed:.1f} 秒。"
    )

    try:
        result.raise_for_failures()
    except BatchError as exc:
        for outcome in exc.failures:
            typer.echo(f"失败：{outcome.project}: {outcome.error}", err=True)
        raise typer.Exit(code=1) from exc


if __name__ == "__main__":
    app()
