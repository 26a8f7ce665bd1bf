"""图标合成：底图缩放、斜面边框与徽标叠加。"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from PIL import Image, ImageDraw, UnidentifiedImageError

from brand_automation.core.exceptions import EncodeError

LOGGER = logging.getLogger(__name__)

_RESAMPLING = getattr(Image, "Resampling", Image)

SMALL_ICON_LIMIT = 16
EMBLEM_EDGE = 18
EMBLEM_MARGIN = 4
SMALL_EMBLEM_EDGE = 9
SMALL_EMBLEM_MARGIN = 2

OUTER_BORDER = (0, 0, 0, 255)
INNER_BORDER = (255, 255, 255, 128)


def load_rgba(path: Path) -> Image.Image:
    """加载图片并转换为 RGBA，返回的新对象由调用者负责。"""

    try:
        with Image.open(path) as img:
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as exc:
        LOGGER.debug("无法加载图像 %s: %s", path, exc)
        raise EncodeError(f"无法加载图像: {path}") from exc


def emblem_box(size: int) -> tuple[int, int, int]:
    """返回徽标左上角坐标与边长。

    16 像素及以下的图标使用半尺寸徽标和更小的边距，以保证可辨识。
    """

    if size <= SMALL_ICON_LIMIT:
        edge, margin = SMALL_EMBLEM_EDGE, SMALL_EMBLEM_MARGIN
    else:
        edge, margin = EMBLEM_EDGE, EMBLEM_MARGIN
    offset = size - margin - edge
    return offset, offset, edge


def compose(size: int, base: Image.Image, emblem: Image.Image) -> Image.Image:
    """生成 size×size 的 RGBA 图标，输入相同则输出相同。"""

    if size <= 0:
        raise EncodeError(f"图标尺寸必须大于 0: {size}")

    canvas = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    scaled = base.convert("RGBA").resize((size, size), _RESAMPLING.LANCZOS)
    canvas.alpha_composite(scaled)

    draw = ImageDraw.Draw(canvas)
    draw.rectangle((0, 0, size - 1, size - 1), outline=OUTER_BORDER, width=1)

    if size > 2:
        bevel = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        ImageDraw.Draw(bevel).rectangle((1, 1, size - 2, size - 2), outline=INNER_BORDER, width=1)
        canvas.alpha_composite(bevel)

    x, y, edge = emblem_box(size)
    mark = emblem.convert("RGBA").resize((edge, edge), _RESAMPLING.LANCZOS)
    layer = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    layer.paste(mark, (x, y))
    canvas.alpha_composite(layer)
    return canvas


def compose_file(size: int, base_path: Path, emblem_path: Path, output_path: Path) -> Path:
    """从文件合成图标并写出 PNG。"""

    base = load_rgba(base_path)
    emblem = load_rgba(emblem_path)
    try:
        icon = compose(size, base, emblem)
    finally:
        base.close()
        emblem.close()

    tmp_path = output_path.with_name(output_path.name + ".tmp")
    try:
        icon.save(tmp_path, format="PNG")
        os.replace(tmp_path, output_path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise EncodeError(f"写入图标失败: {output_path}") from exc
    finally:
        icon.close()
    return output_path
