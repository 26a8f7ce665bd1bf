"""项目描述文件（XML properties 格式）的加载与校验。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from lxml import etree

from brand_automation.core.exceptions import ConfigError, FileOperationError
from brand_automation.core.models import (
    PRIMARY_ICON_ID,
    PRIMARY_ICON_IMAGE,
    Book,
    Icon,
    ProjectDescriptor,
)

LOGGER = logging.getLogger(__name__)


def load_descriptor(project_name: str, path: Path) -> ProjectDescriptor:
    """读取并校验项目描述文件。

    必需键：``description``、``source``、``url``。``books`` 与 ``icons`` 为以空白
    分隔的 id 列表，每个 id 需要对应的 ``<list>.<id>.<field>`` 子属性。
    主图标 ``icon`` 总是排在第一位，其余按声明顺序。
    """

    properties = read_properties(path)

    books = [
        Book(
            id=book_id,
            cover=_require(properties, f"books.{book_id}.cover", path),
            title=_require(properties, f"books.{book_id}.title", path),
        )
        for book_id in _id_list(properties, "books")
    ]

    icons = [Icon(id=PRIMARY_ICON_ID, image=PRIMARY_ICON_IMAGE)]
    for icon_id in _id_list(properties, "icons"):
        if icon_id == PRIMARY_ICON_ID:
            raise ConfigError(
                f"{path}: 图标 id 与主图标冲突: {icon_id}",
                key="icons",
                path=path,
                kind="invalid-value",
            )
        icons.append(Icon(id=icon_id, image=_require(properties, f"icons.{icon_id}.file", path)))

    descriptor = ProjectDescriptor(
        name=project_name,
        description=_require(properties, "description", path),
        source=_require(properties, "source", path),
        url=_require(properties, "url", path),
        books=tuple(books),
        icons=tuple(icons),
    )
    LOGGER.debug("%s: 加载 %d 本书, %d 个图标", project_name, len(books), len(icons))
    return descriptor


def read_properties(path: Path) -> dict[str, str]:
    """解析 ``<properties><entry key="...">value</entry></properties>``。"""

    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FileOperationError("读取描述文件", path) from exc

    try:
        # DOCTYPE 指向外部 properties.dtd，不加载也不联网；解析器不在线程间共享。
        parser = etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)
        root = etree.fromstring(raw, parser)
    except etree.XMLSyntaxError as exc:
        raise ConfigError(f"无法解析 {path}: {exc}", path=path, kind="malformed") from exc

    if root.tag != "properties":
        raise ConfigError(f"{path}: 根元素必须是 properties", path=path, kind="malformed")

    properties: dict[str, str] = {}
    for entry in root.iter("entry"):
        key = entry.get("key")
        if key is None:
            raise ConfigError(f"{path}: entry 缺少 key 属性", path=path, kind="malformed")
        properties[key] = entry.text or ""
    return properties


def _id_list(properties: Mapping[str, str], name: str) -> list[str]:
    return properties.get(name, "").split()


def _require(properties: Mapping[str, str], key: str, path: Path) -> str:
    value = properties.get(key)
    if value is None:
        raise ConfigError(f"{path}: 缺少必需属性: {key}", key=key, path=path)
    value = value.strip()
    if not value:
        raise ConfigError(f"{path}: 属性为空: {key}", key=key, path=path, kind="invalid-value")
    return value
