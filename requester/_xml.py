from __future__ import annotations

import dataclasses
import re
import typing
import xml.etree.ElementTree as ET
from collections.abc import Mapping

from ._utils import to_string

TAG_REGEX = re.compile(r"[A-Za-z_][A-Za-z0-9_.-]*")


def encode_xml(value: typing.Any) -> bytes:
    """Encode a plain Python value as an XML document.

    Accepted documents:

    * an :class:`xml.etree.ElementTree.Element`, written as is;
    * a mapping with exactly one key, the key naming the root element;
    * a dataclass instance, the class name naming the root element.

    Inside a document, mapping keys and dataclass fields become child
    elements, ``"@name"`` keys become attributes, a ``"#text"`` key sets the
    element text and list values repeat the element once per item.
    """
    if isinstance(value, ET.Element):
        return ET.tostring(value, encoding="utf-8", xml_declaration=False)
    if isinstance(value, Mapping):
        if len(value) != 1:
            raise ValueError(
                f"an XML document needs exactly one root element, got {len(value)}"
            )
        ((tag, content),) = value.items()
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        tag, content = type(value).__name__, value
    else:
        raise TypeError(f"cannot encode {type(value).__name__!r} as an XML document")
    if isinstance(content, (list, tuple)):
        raise TypeError("a sequence needs an enclosing root element")
    root = _build(_check_tag(tag), content)
    return ET.tostring(root, encoding="utf-8", xml_declaration=False)


def decode_xml(data: bytes) -> ET.Element:
    return ET.fromstring(data)


def _check_tag(tag: typing.Any) -> str:
    if not isinstance(tag, str) or not TAG_REGEX.fullmatch(tag):
        raise ValueError(f"invalid XML element name: {tag!r}")
    return tag


def _children(value: typing.Any) -> typing.Iterator[tuple[str, typing.Any]]:
    if dataclasses.is_dataclass(value):
        for field in dataclasses.fields(value):
            yield field.name, getattr(value, field.name)
    else:
        yield from value.items()


def _build(tag: str, value: typing.Any) -> ET.Element:
    element = ET.Element(tag)
    _fill(element, value)
    return element


def _fill(element: ET.Element, value: typing.Any) -> None:
    if value is None:
        return
    if isinstance(value, Mapping) or (
        dataclasses.is_dataclass(value) and not isinstance(value, type)
    ):
        for key, item in _children(value):
            if isinstance(key, str) and key.startswith("@"):
                element.set(_check_tag(key[1:]), _text(item))
            elif key == "#text":
                element.text = _text(item)
            elif isinstance(item, (list, tuple)):
                for entry in item:
                    _fill(ET.SubElement(element, _check_tag(key)), entry)
            else:
                _fill(ET.SubElement(element, _check_tag(key)), item)
        return
    element.text = _text(value)


def _text(value: typing.Any) -> str:
    if isinstance(value, (str, bytes, bool, int, float)):
        return to_string(value)
    raise TypeError(f"cannot encode {type(value).__name__!r} as XML text")
