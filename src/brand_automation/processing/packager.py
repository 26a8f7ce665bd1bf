"""将多个尺寸的图标打包为 ICO 容器。"""

from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import Sequence

from brand_automation.core.exceptions import EncodeError
from brand_automation.processing.compositor import load_rgba

LOGGER = logging.getLogger(__name__)

MAX_ICO_EDGE = 256


def pack(paths: Sequence[Path]) -> bytes:
    """读取各尺寸 PNG 并编码为一个 ICO 容器，每张输入图像对应一帧。

    输入应按 [128, 48, 32, 16] 这样的降序给出。写出的目录项按尺寸升序排列
    （Pillow 编码器的行为），读取方再按从大到小列出帧，默认打开最大一帧。
    """

    if not paths:
        raise EncodeError("没有可打包的图像")

    images = []
    try:
        for path in paths:
            images.append(load_rgba(path))
        sizes = [image.size for image in images]
        for path, (width, height) in zip(paths, sizes):
            if width != height:
                raise EncodeError(f"图标必须为正方形: {path} ({width}x{height})")
            if width > MAX_ICO_EDGE:
                raise EncodeError(f"ICO 帧不能超过 {MAX_ICO_EDGE} 像素: {path}")
        if len(set(sizes)) != len(sizes):
            raise EncodeError(f"存在重复尺寸: {sizes}")

        largest = max(images, key=lambda image: image.width)
        others = [image for image in images if image is not largest]
        buffer = io.BytesIO()
        try:
            largest.save(buffer, format="ICO", sizes=sizes, append_images=others)
        except (OSError, ValueError) as exc:
            raise EncodeError(f"ICO 编码失败: {exc}") from exc
        return buffer.getvalue()
    finally:
        for image in images:
            image.close()


def pack_file(paths: Sequence[Path], output_path: Path) -> Path:
    """打包并以替换方式写出 ICO 文件。"""

    payload = pack(paths)
    tmp_path = output_path.with_name(output_path.name + ".tmp")
    try:
        tmp_path.write_bytes(payload)
        os.replace(tmp_path, output_path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise EncodeError(f"写入 ICO 失败: {output_path}") from exc
    LOGGER.debug("写出 %s (%d 帧, %d 字节)", output_path, len(paths), len(payload))
    return output_path
