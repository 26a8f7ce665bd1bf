"""外部工具（XSLT 转换、SVG 栅格化、格式转换）的调用封装。"""

from __future__ import annotations

import logging
import subprocess
import threading
from pathlib import Path
from typing import IO, Mapping, Optional, Sequence, Union

from brand_automation.core.config import ToolCommands
from brand_automation.core.exceptions import FileOperationError, ToolError

LOGGER = logging.getLogger(__name__)

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]


class OutputDrain:
    """在后台线程中逐行读取子进程输出并写入日志。

    进入上下文时启动读取线程，退出时等待输出流结束后回收线程。
    未被读取的管道在缓冲区满后会阻塞子进程，因此每次调用都必须持有一个。
    """

    def __init__(self, stream: IO[bytes], logger: LoggerLike, tag: str) -> None:
        self._stream = stream
        self._logger = logger
        self._tag = tag
        self._thread = threading.Thread(target=self._drain, name=f"drain[{tag}]", daemon=True)

    def __enter__(self) -> "OutputDrain":
        self._thread.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._thread.join()

    def _drain(self) -> None:
        try:
            with self._stream:
                for raw in iter(self._stream.readline, b""):
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    self._logger.info("%s: %s", self._tag, line)
        except (OSError, ValueError) as exc:
            self._logger.error("%s: 读取输出失败: %s", self._tag, exc)


def invoke(
    command: Sequence[str],
    args: Sequence[str],
    working_dir: Path,
    *,
    logger: LoggerLike = LOGGER,
    step: str = "tool",
    stdout_path: Optional[Path] = None,
) -> None:
    """运行外部命令并等待结束，非零退出码抛出 ``ToolError``。

    指定 ``stdout_path`` 时标准输出（含 stderr）写入该文件，否则逐行记录日志。
    不设超时，也不重试。
    """

    argv = [*command, *args]
    tool = Path(command[0]).name if command else "?"
    tag = f"{step}: {tool}"
    logger.debug("%s: 执行 %s (cwd=%s)", tag, argv, working_dir)

    if stdout_path is not None:
        try:
            handle = stdout_path.open("wb")
        except OSError as exc:
            raise FileOperationError("写入输出", stdout_path) from exc
        with handle:
            process = _spawn(argv, working_dir, handle, logger=logger, tool=tool, step=step)
            exit_code = process.wait()
    else:
        process = _spawn(argv, working_dir, subprocess.PIPE, logger=logger, tool=tool, step=step)
        assert process.stdout is not None
        with OutputDrain(process.stdout, logger, tag):
            exit_code = process.wait()

    if exit_code != 0:
        logger.error("%s: 退出码 %d", tag, exit_code)
        raise ToolError(tool, exit_code, step)


def _spawn(
    argv: Sequence[str],
    working_dir: Path,
    stdout: Union[int, IO[bytes]],
    *,
    logger: LoggerLike,
    tool: str,
    step: str,
) -> subprocess.Popen:
    """启动子进程；工作目录问题归为文件系统错误，其余启动失败归为工具错误。"""

    if not working_dir.is_dir():
        raise FileOperationError("进入工作目录", working_dir)
    try:
        return subprocess.Popen(argv, cwd=working_dir, stdout=stdout, stderr=subprocess.STDOUT)
    except OSError as exc:
        logger.error("%s: %s: 无法启动: %s", step, tool, exc)
        raise ToolError(tool, None, step) from exc


class ToolRunner:
    """绑定到某个项目输出目录的三种外部工具调用约定。"""

    def __init__(self, commands: ToolCommands, working_dir: Path, logger: LoggerLike = LOGGER) -> None:
        self.commands = commands
        self.working_dir = working_dir
        self.logger = logger

    def transform(
        self,
        stylesheet: Path,
        source: Path,
        output: Path,
        params: Mapping[str, str],
        *,
        step: str,
    ) -> None:
        """用 XSLT 样式表渲染参数化 SVG 模板。"""

        args = [f"-xsl:{stylesheet}", f"-s:{source}", f"-o:{output}"]
        args.extend(f"{name}={value}" for name, value in params.items())
        invoke(self.commands.transformer, args, self.working_dir, logger=self.logger, step=step)

    def rasterize(self, svg: Path, png: Path, width: int, height: int, *, step: str) -> None:
        """将 SVG 按固定像素尺寸导出为 PNG。"""

        args = [
            "--export-type=png",
            f"--export-width={width}",
            f"--export-height={height}",
            f"--export-filename={png}",
            str(svg),
        ]
        invoke(self.commands.rasterizer, args, self.working_dir, logger=self.logger, step=step)

    def convert(self, source: Path, destination: Path, *, step: str) -> None:
        """格式转换，目标格式由扩展名决定。"""

        invoke(
            self.commands.converter,
            [str(source), str(destination)],
            self.working_dir,
            logger=self.logger,
            step=step,
        )
