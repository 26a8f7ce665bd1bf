"""多项目批处理：固定大小线程池并发执行各项目流水线并汇总结果。"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import timedelta
from typing import Callable, Optional, Sequence

from brand_automation.core.config import BrandingConfig
from brand_automation.core.models import BatchResult, PipelineOutcome
from brand_automation.core.progress import ProgressUpdate
from brand_automation.processing.pipeline import run_project

LOGGER = logging.getLogger(__name__)


ProgressCallback = Optional[Callable[[ProgressUpdate], None]]
PipelineFactory = Callable[[str, BrandingConfig], object]


def run_batch(
    project_names: Sequence[str],
    config: BrandingConfig,
    *,
    progress_callback: ProgressCallback = None,
    pipeline_factory: PipelineFactory = run_project,
) -> BatchResult:
    """并发运行每个项目的流水线，等待全部结束后返回汇总结果。

    单个项目失败不会取消其他项目；结果按派发顺序排列。
    """

    config.validate()
    names = _unique_names(project_names)
    total = len(names)
    if total == 0:
        LOGGER.info("没有需要处理的项目")
        _emit_progress(progress_callback, 0, 0, 0, status="done")
        return BatchResult()

    LOGGER.info("开始处理 %d 个项目（workers=%d）", total, config.max_workers)
    started = time.monotonic()
    outcomes: list[Optional[PipelineOutcome]] = [None] * total
    completed = 0
    failed = 0

    with ThreadPoolExecutor(
        max_workers=config.max_workers, thread_name_prefix="brand_automation.task"
    ) as executor:
        future_map = {
            executor.submit(_run_one, name, config, pipeline_factory): index
            for index, name in enumerate(names)
        }
        for future in as_completed(future_map):
            index = future_map[future]
            outcome = future.result()
            outcomes[index] = outcome
            completed += 1
            if not outcome.succeeded:
                failed += 1
            _emit_progress(
                progress_callback,
                completed,
                total,
                failed,
                project=outcome.project,
                status="running" if outcome.succeeded else "failed",
            )

    elapsed = time.monotonic() - started
    result = BatchResult(outcomes=[outcome for outcome in outcomes if outcome is not None], elapsed=elapsed)

    for outcome in result.outcomes:
        if outcome.succeeded:
            LOGGER.info("%s: 完成，耗时 %s", outcome.project, timedelta(seconds=outcome.elapsed))
        else:
            LOGGER.error("%s: %s", outcome.project, outcome.error)

    LOGGER.info("execution finished in %s", timedelta(seconds=elapsed))
    LOGGER.info("executed %d projects", result.attempted)
    LOGGER.info("succeeded %d projects", len(result.succeeded))
    LOGGER.info("failed %d projects", result.failed)
    _emit_progress(progress_callback, total, total, failed, status="done")
    return result


def _unique_names(project_names: Sequence[str]) -> list[str]:
    """去掉重复的项目名，保留首次出现的位置；同一输出目录只能有一个流水线写入。"""

    names: list[str] = []
    seen: set[str] = set()
    for name in project_names:
        if name in seen:
            LOGGER.warning("%s: 项目名重复，忽略", name)
            continue
        seen.add(name)
        names.append(name)
    return names


def _run_one(name: str, config: BrandingConfig, pipeline_factory: PipelineFactory) -> PipelineOutcome:
    """在工作线程中执行单个项目，任何异常都转为失败结果。"""

    started = time.monotonic()
    try:
        pipeline_factory(name, config)
    except Exception as exc:  # noqa: BLE001
        LOGGER.debug("%s: 流水线异常", name, exc_info=exc)
        return PipelineOutcome(project=name, error=exc, elapsed=time.monotonic() - started)
    return PipelineOutcome(project=name, elapsed=time.monotonic() - started)


def _emit_progress(
    callback: ProgressCallback,
    completed: int,
    total: int,
    failed: int,
    *,
    project: Optional[str] = None,
    status: str = "running",
) -> None:
    if not callback:
        return
    message = None
    if project is not None:
        message = f"{'失败' if status == 'failed' else '完成'} {project}"
    callback(
        ProgressUpdate(
            total=total,
            completed=completed,
            failed=failed,
            project=project,
            message=message,
            status=status,
        )
    )
