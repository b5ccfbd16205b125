import logging
from collections.abc import Iterator
from typing import Any, ClassVar

from pdfextract import settings
from pdfextract.pdfdocument import PDFDocument
from pdfextract.pdfexceptions import PDFValueError
from pdfextract.pdftypes import PDFObjRef, dict_value, int_value, list_value, resolve1
from pdfextract.psparser import LIT
from pdfextract.utils import Rect, parse_rect

log = logging.getLogger(__name__)

# some predefined literals and keywords.
LITERAL_PAGE = LIT("Page")
LITERAL_PAGES = LIT("Pages")

US_LETTER: Rect = (0.0, 0.0, 612.0, 792.0)


class PDFPage:
    """An object that holds the information about a page.

    A PDFPage object is merely a convenience class that has a set
    of keys and values, which describe the properties of a page
    and point to its contents. Inheritable attributes of the ancestor
    /Pages nodes are already merged into ``attrs``.

    Attributes
    ----------
      doc: a PDFDocument object.
      pageid: the object number of the page (or None for a direct object).
      attrs: a dictionary of page attributes.
      contents: a list of (references to) the page's content streams.
      resources: a dictionary of resources used by the page.
      mediabox: the physical size of the page.
      cropbox: the crop rectangle of the page.
      rotate: the page rotation (in degree).

    """

    def __init__(self, doc: PDFDocument, pageid: int | None, attrs: object) -> None:
        """Initialize a page object.

        doc: a PDFDocument object.
        pageid: the object number of the page.
        attrs: a dictionary of page attributes.
        """
        self.doc = doc
        self.pageid = pageid
        self.attrs = dict_value(attrs)
        self.resources: dict[str, Any] = dict_value(self.attrs.get("Resources", {}))
        self.mediabox = self._parse_mediabox(self.attrs.get("MediaBox"))
        self.cropbox = self._parse_cropbox(self.attrs.get("CropBox"), self.mediabox)
        self.contents = self._parse_contents(self.attrs.get("Contents"))
        self.rotate = (int_value(self.attrs.get("Rotate", 0)) + 360) % 360

    def __repr__(self) -> str:
        return f"<PDFPage: Resources={self.resources!r}, MediaBox={self.mediabox!r}>"

    INHERITABLE_ATTRS: ClassVar[set[str]] = {
        "Resources",
        "MediaBox",
        "CropBox",
        "Rotate",
    }

    @classmethod
    def create_pages(cls, document: PDFDocument) -> Iterator["PDFPage"]:
        """Yields the pages of the document in document order."""

        def depth_first_search(
            obj: Any,
            parent: dict[str, Any],
            visited: set[int],
        ) -> Iterator[tuple[int | None, dict[str, Any]]]:
            object_id = obj.objid if isinstance(obj, PDFObjRef) else None
            if object_id is not None:
                if object_id in visited:
                    if settings.STRICT:
                        raise PDFValueError(f"Page tree visits object {object_id} twice")
                    log.warning("Page tree visits object %d twice, skipped", object_id)
                    return
                visited.add(object_id)
            object_properties = dict_value(obj).copy()

            for k, v in parent.items():
                if k in cls.INHERITABLE_ATTRS and k not in object_properties:
                    object_properties[k] = v

            object_type = object_properties.get("Type")
            if object_type is None and not settings.STRICT:
                object_type = object_properties.get("type")

            if object_type is LITERAL_PAGES and "Kids" in object_properties:
                log.debug("Pages: Kids=%r", object_properties["Kids"])
                for child in list_value(object_properties["Kids"]):
                    yield from depth_first_search(child, object_properties, visited)

            elif object_type is LITERAL_PAGE:
                log.debug("Page: %r", object_properties)
                yield (object_id, object_properties)

            else:
                log.warning("Page tree node %r is neither /Pages nor /Page", object_id)

        pages = False
        if "Pages" in document.catalog:
            objects = depth_first_search(document.catalog["Pages"], {}, set())
            for objid, tree in objects:
                yield cls(document, objid, tree)
                pages = True
        if not pages:
            # fallback when /Pages is missing.
            log.warning("No usable /Pages tree, looking for page objects")
            for objid in document.get_objids():
                obj = document.getobj(objid)
                if isinstance(obj, dict) and obj.get("Type") is LITERAL_PAGE:
                    yield cls(document, objid, obj)

    def _parse_mediabox(self, value: Any) -> Rect:
        if value is None:
            log.warning(
                "MediaBox missing from /Page (and not inherited), "
                "defaulting to US Letter"
            )
            return US_LETTER

        try:
            return parse_rect(resolve1(val) for val in resolve1(value))

        except (PDFValueError, TypeError):
            log.warning("Invalid MediaBox in /Page, defaulting to US Letter")
            return US_LETTER

    def _parse_cropbox(self, value: Any, mediabox: Rect) -> Rect:
        if value is None:
            # CropBox is optional, and MediaBox is used if not specified.
            return mediabox

        try:
            return parse_rect(resolve1(val) for val in resolve1(value))

        except (PDFValueError, TypeError):
            log.warning("Invalid CropBox in /Page, defaulting to MediaBox")
            return mediabox

    def _parse_contents(self, value: Any) -> list[Any]:
        contents: list[Any] = []
        if value is not None:
            contents = resolve1(value)
            if not isinstance(contents, list):
                contents = [contents]
        return contents
