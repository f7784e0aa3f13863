"""
Namespace-agnostic lxml helpers shared by the XML controllers.
"""

import gzip
import zlib
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from lxml import etree

from ..exceptions import FileFormatError
from ..model import CvParam, ParamGroup, UserParam

PREFIX_BYTES = 64 * 1024


def localname(element) -> str:
    if not isinstance(element.tag, str):
        return ""
    return etree.QName(element).localname


def children(element, name: str) -> List:
    return [c for c in element if localname(c) == name]


def child(element, name: str):
    for c in element:
        if localname(c) == name:
            return c
    return None


def child_text(element, name: str, default: str = "") -> str:
    c = child(element, name) if element is not None else None
    if c is None or c.text is None:
        return default
    return c.text.strip()


def descendants(element, name: str) -> Iterator:
    for e in element.iter():
        if localname(e) == name:
            yield e


def first_descendant(element, name: str):
    return next(descendants(element, name), None)


def cv_param_from(element) -> CvParam:
    """
    Build a CvParam from a cvParam element.

    mzIdentML / mzML use cvRef, PRIDE XML uses cvLabel; a missing attribute yields a
    CvParam without an ontology reference.
    """
    lookup = element.get("cvRef") or element.get("cvLabel")
    return CvParam(
        accession=element.get("accession", ""),
        name=element.get("name", ""),
        cv_lookup_id=lookup or None,
        value=element.get("value") or None,
    )


def user_param_from(element) -> UserParam:
    return UserParam(name=element.get("name", ""), value=element.get("value") or None)


def param_group(element) -> ParamGroup:
    """Direct cvParam / userParam children of an element."""
    group = ParamGroup()
    if element is None:
        return group
    for c in element:
        name = localname(c)
        if name == "cvParam":
            group.cv_params.append(cv_param_from(c))
        elif name == "userParam":
            group.user_params.append(user_param_from(c))
    return group


def is_gzip(path: Union[str, Path]) -> bool:
    with open(path, 'rb') as f:
        return f.read(2) == b'\x1f\x8b'


def open_binary(path: Union[str, Path]):
    """Open a file for binary reading, decompressing gzip content."""
    return gzip.open(path, 'rb') if is_gzip(path) else open(path, 'rb')


def parse_tree(path: Union[str, Path]):
    """
    Parse a whole XML document (gzip transparently) and return its root element.

    Raises:
        FileFormatError: If the document is not well-formed XML.
    """
    parser = etree.XMLParser(huge_tree=True, remove_blank_text=True)
    with open_binary(path) as f:
        try:
            return etree.parse(f, parser).getroot()
        except etree.XMLSyntaxError as e:
            raise FileFormatError(f"Malformed XML in {path}: {e}") from e
        except (EOFError, zlib.error) as e:
            raise FileFormatError(f"Truncated or corrupt gzip stream in {path}: {e}") from e


def read_prefix(path: Union[str, Path], size: int = PREFIX_BYTES) -> bytes:
    """
    Read the first bytes of a file, decompressing gzip content.

    Raises:
        FileFormatError: If the gzip stream ends early or is corrupt.
    """
    with open_binary(path) as f:
        try:
            return f.read(size)
        except (EOFError, zlib.error) as e:
            raise FileFormatError(f"Truncated or corrupt gzip stream in {path}: {e}") from e


def sniff_root(path: Union[str, Path]) -> Optional[Tuple[str, str]]:
    """
    Local name and namespace of the document element, read from a bounded prefix only.

    Returns None when the prefix does not start a well-formed XML document.
    """
    prefix = read_prefix(path)
    parser = etree.XMLPullParser(events=("start",))
    try:
        parser.feed(prefix)
        for _, element in parser.read_events():
            qname = etree.QName(element)
            return qname.localname, qname.namespace or ""
    except etree.XMLSyntaxError:
        return None
    return None
