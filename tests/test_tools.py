"""外部工具调用：输出排空、退出码与参数约定。"""

from __future__ import annotations

import json
import logging
import sys
import textwrap
from pathlib import Path

import pytest

from brand_automation.core.config import ToolCommands
from brand_automation.core.exceptions import FileOperationError, ToolError
from brand_automation.processing.tools import ToolRunner, invoke
from brand_automation.utils.logging import ProjectLogger
from conftest import write_script

RECORDER_STUB = textwrap.dedent(
    """
    import json, os, sys
    with open(os.environ.get("RECORD_FILE", "record.json"), "w", encoding="utf-8") as handle:
        json.dump({"argv": sys.argv[1:], "cwd": os.getcwd()}, handle)
    """
)


def test_invoke_logs_output_lines_with_step_tag(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    script = write_script(tmp_path / "chatty.py", "import sys\nprint('hello')\nprint('oops', file=sys.stderr)\n")
    logger = ProjectLogger(logging.getLogger("tests.tools"), "demo")

    with caplog.at_level(logging.INFO, logger="tests.tools"):
        invoke(script, [], tmp_path, logger=logger, step="render")

    messages = [record.getMessage() for record in caplog.records]
    tool = Path(sys.executable).name
    assert f"demo: render: {tool}: hello" in messages
    assert f"demo: render: {tool}: oops" in messages


def test_invoke_drains_large_output(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    # 输出远超管道缓冲区，未排空时子进程会阻塞。
    script = write_script(tmp_path / "flood.py", "for i in range(20000):\n    print('x' * 100, i)\n")

    with caplog.at_level(logging.WARNING):
        invoke(script, [], tmp_path, step="flood")


def test_invoke_raises_tool_error_on_nonzero_exit(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    script = write_script(tmp_path / "fail.py", "import sys\nsys.exit(3)\n")

    with pytest.raises(ToolError) as excinfo:
        invoke(script, [], tmp_path, step="render-png")

    assert excinfo.value.exit_code == 3
    assert excinfo.value.step == "render-png"
    assert excinfo.value.tool == Path(sys.executable).name
    assert any(record.levelno == logging.ERROR for record in caplog.records)


def test_invoke_missing_command(tmp_path: Path) -> None:
    with pytest.raises(ToolError) as excinfo:
        invoke([str(tmp_path / "no-such-tool")], [], tmp_path, step="convert")

    assert excinfo.value.exit_code is None
    assert excinfo.value.tool == "no-such-tool"


def test_invoke_redirects_stdout_to_file(tmp_path: Path) -> None:
    script = write_script(tmp_path / "emit.py", "print('<svg/>')\n")
    target = tmp_path / "out.svg"

    invoke(script, [], tmp_path, step="transform", stdout_path=target)

    assert target.read_text().strip() == "<svg/>"


def test_tool_runner_argument_contracts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = write_script(tmp_path / "record.py", RECORDER_STUB)
    record = tmp_path / "record.json"
    monkeypatch.setenv("RECORD_FILE", str(record))
    work = tmp_path / "work"
    work.mkdir()
    runner = ToolRunner(ToolCommands(recorder, recorder, recorder), work)

    def recorded() -> dict:
        return json.loads(record.read_text(encoding="utf-8"))

    runner.transform(
        Path("/t/social3.xsl"),
        Path("/t/social3.svg"),
        work / "background.svg",
        {"projectName": "demo", "projectDescription": "A demo project"},
        step="social-image-svg",
    )
    assert recorded()["argv"] == [
        "-xsl:/t/social3.xsl",
        "-s:/t/social3.svg",
        f"-o:{work / 'background.svg'}",
        "projectName=demo",
        "projectDescription=A demo project",
    ]
    assert Path(recorded()["cwd"]).resolve() == work.resolve()

    runner.rasterize(work / "cover.svg", work / "cover.png", 600, 800, step="book-cover-png")
    assert recorded()["argv"] == [
        "--export-type=png",
        "--export-width=600",
        "--export-height=800",
        f"--export-filename={work / 'cover.png'}",
        str(work / "cover.svg"),
    ]

    runner.convert(work / "cover.png", work / "manual.jpeg", step="book-cover-jpeg")
    assert recorded()["argv"] == [str(work / "cover.png"), str(work / "manual.jpeg")]


def test_invoke_missing_working_dir_is_file_error(tmp_path: Path) -> None:
    script = write_script(tmp_path / "ok.py", "print('ok')\n")
    missing = tmp_path / "gone"

    with pytest.raises(FileOperationError) as excinfo:
        invoke(script, [], missing, step="render")

    assert excinfo.value.path == missing


@pytest.mark.parametrize(
    ("content", "mode"),
    [
        (b"#!/bin/sh\necho hi\n", 0o644),  # 没有执行权限
        (b"\x00\x01\x02 not a program", 0o755),  # 无法识别的可执行格式
    ],
)
def test_invoke_unstartable_command_is_tool_error(tmp_path: Path, content: bytes, mode: int) -> None:
    command = tmp_path / "broken-tool"
    command.write_bytes(content)
    command.chmod(mode)

    with pytest.raises(ToolError) as excinfo:
        invoke([str(command)], [], tmp_path, step="convert")

    assert excinfo.value.exit_code is None
    assert excinfo.value.tool == "broken-tool"
