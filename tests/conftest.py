"""测试共用的项目目录与外部工具桩。"""

from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Mapping, Optional
from xml.sax.saxutils import escape, quoteattr

import pytest
from PIL import Image

from brand_automation.core.config import BrandingConfig, ToolCommands

TRANSFORMER_STUB = textwrap.dedent(
    """
    import sys
    args = sys.argv[1:]
    output = next(a[3:] for a in args if a.startswith("-o:"))
    params = [a for a in args if not a.startswith("-")]
    print("transform", output)
    with open(output, "w", encoding="utf-8") as handle:
        handle.write("<svg xmlns='http://www.w3.org/2000/svg'><!-- %s --></svg>" % " ".join(params))
    """
)

RASTERIZER_STUB = textwrap.dedent(
    """
    import sys
    from PIL import Image
    opts = dict(a[2:].split("=", 1) for a in sys.argv[1:] if a.startswith("--"))
    size = (int(opts["export-width"]), int(opts["export-height"]))
    print("export", opts["export-filename"], size)
    Image.new("RGB", size, (40, 90, 160)).save(opts["export-filename"], format="PNG")
    """
)

CONVERTER_STUB = textwrap.dedent(
    """
    import sys
    from PIL import Image
    source, destination = sys.argv[1:3]
    with Image.open(source) as img:
        img.convert("RGB").save(destination, format="JPEG", quality=90)
    """
)

FAILING_STUB = textwrap.dedent(
    """
    import sys
    print("simulated failure", file=sys.stderr)
    sys.exit(int(sys.argv[1]) if len(sys.argv) > 1 and sys.argv[1].isdigit() else 1)
    """
)


def write_script(path: Path, body: str) -> list[str]:
    path.write_text(body, encoding="utf-8")
    return [sys.executable, str(path)]


def write_descriptor(path: Path, entries: Mapping[str, str]) -> Path:
    body = "".join(
        f"  <entry key={quoteattr(key)}>{escape(value)}</entry>\n" for key, value in entries.items()
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        '<?xml version="1.0" encoding="UTF-8" standalone="no"?>\n'
        '<!DOCTYPE properties SYSTEM "http://java.sun.com/dtd/properties.dtd">\n'
        "<properties>\n"
        "  <comment>branding</comment>\n"
        f"{body}"
        "</properties>\n",
        encoding="utf-8",
    )
    return path


def basic_entries(name: str) -> dict[str, str]:
    return {
        "description": f"{name} does useful things",
        "source": f"https://example.com/{name}/background",
        "url": f"https://www.example.com/{name}",
    }


class Workspace:
    """在 tmp_path 下搭建 src/ 与 output/ 目录结构。"""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.source_dir = root / "src"
        self.output_dir = root / "output"
        self.stub_dir = root / "stubs"
        self.stub_dir.mkdir(parents=True)
        (self.source_dir / "projects").mkdir(parents=True)

        Image.new("RGBA", (18, 18), (200, 20, 20, 255)).save(self.source_dir / "emblem18.png")
        for name in ("social3.xsl", "social3.svg", "book_cover.xsl", "book_cover.svg"):
            (self.source_dir / name).write_text("<template/>", encoding="utf-8")

        self.tools = ToolCommands(
            transformer=write_script(self.stub_dir / "transform.py", TRANSFORMER_STUB),
            rasterizer=write_script(self.stub_dir / "rasterize.py", RASTERIZER_STUB),
            converter=write_script(self.stub_dir / "convert.py", CONVERTER_STUB),
        )

    def failing_tool(self) -> list[str]:
        return write_script(self.stub_dir / "fail.py", FAILING_STUB)

    def config(self, *, tools: Optional[ToolCommands] = None, max_workers: int = 4) -> BrandingConfig:
        return BrandingConfig(
            source_dir=self.source_dir,
            output_dir=self.output_dir,
            tools=tools or self.tools,
            max_workers=max_workers,
        )

    def add_project(
        self,
        name: str,
        *,
        books: Mapping[str, str] | None = None,
        icons: Mapping[str, str] | None = None,
        omit: tuple[str, ...] = (),
    ) -> Path:
        """创建项目源目录；books 为 id -> 标题，icons 为 id -> 文件名。"""

        project_dir = self.source_dir / "projects" / name
        project_dir.mkdir(parents=True)
        Image.new("RGB", (64, 32), (10, 120, 10)).save(project_dir / "background.png")
        Image.new("RGBA", (256, 256), (20, 40, 220, 255)).save(project_dir / "icon.png")

        entries = basic_entries(name)
        if books:
            entries["books"] = " ".join(books)
            for book_id, title in books.items():
                cover = f"{book_id}_cover.png"
                Image.new("RGB", (30, 40), (90, 90, 90)).save(project_dir / cover)
                entries[f"books.{book_id}.cover"] = cover
                entries[f"books.{book_id}.title"] = title
        if icons:
            entries["icons"] = " ".join(icons)
            for icon_id, filename in icons.items():
                Image.new("RGBA", (96, 96), (240, 200, 0, 255)).save(project_dir / filename)
                entries[f"icons.{icon_id}.file"] = filename
        for key in omit:
            entries.pop(key, None)

        write_descriptor(project_dir / "project.xml", entries)
        return project_dir


@pytest.fixture()
def workspace(tmp_path: Path) -> Workspace:
    return Workspace(tmp_path)
