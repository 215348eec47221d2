#!/usr/bin/env python
import sys
from collections.abc import Iterable
from typing import ClassVar
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from lxml import etree
from lxml.etree import _Element

from squarecal.lib.namespace import nsmap
from squarecal.lib.python_utilities import to_unicode

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self


class BaseElement:
    """
    A node of a request body.  Subclasses set `tag` to a Clark
    notation name; children are added with `+`, i.e.

        dav.Propfind() + (dav.Prop() + [dav.DisplayName(), cdav.GetCTag()])
    """

    tag: ClassVar[Optional[str]] = None

    def __init__(
        self, name: Optional[str] = None, value: Union[str, bytes, None] = None
    ) -> None:
        self.children: List[BaseElement] = []
        self.attributes: Dict[str, str] = {}
        self.value: Optional[str] = to_unicode(value)
        if name is not None:
            self.attributes["name"] = name

    def __add__(self, other: Union["BaseElement", Iterable["BaseElement"]]) -> Self:
        return self.append(other)

    def append(self, element: Union["BaseElement", Iterable["BaseElement"]]) -> Self:
        if isinstance(element, Iterable):
            self.children.extend(element)
        else:
            self.children.append(element)
        return self

    def xmlelement(self) -> _Element:
        if self.tag is None:
            raise ValueError("Unexpected value None for self.tag")

        root = etree.Element(self.tag, nsmap=nsmap)
        if self.value is not None:
            root.text = self.value
        for key, value in self.attributes.items():
            root.set(key, value)
        for child in self.children:
            root.append(child.xmlelement())
        return root

    def to_xml(self) -> bytes:
        """the element as a UTF-8 encoded document, with XML declaration"""
        return etree.tostring(self.xmlelement(), encoding="utf-8", xml_declaration=True)


class NamedBaseElement(BaseElement):
    """An element that requires a name attribute (comp-filter)"""

    def __init__(self, name: str) -> None:
        super().__init__(name=name)


class ValuedBaseElement(BaseElement):
    def __init__(self, value: Union[str, bytes, None] = None) -> None:
        super().__init__(value=value)
