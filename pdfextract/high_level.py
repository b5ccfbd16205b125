"""Functions that can be used for the most common use-cases for pdfextract"""

import logging
from collections.abc import Container, Iterator
from io import StringIO
from typing import Any, NamedTuple

from pdfextract.converter import AnyIO, CharRecord, CharRecorder, TextConverter
from pdfextract.pdfdocument import PDFDocument
from pdfextract.pdfinterp import PDFPageInterpreter, PDFResourceManager, get_content_data
from pdfextract.pdfpage import PDFPage
from pdfextract.pdfparser import PDFParser
from pdfextract.pdftypes import resolve1
from pdfextract.psparser import PSLiteral, literal_name
from pdfextract.utils import FileOrName, decode_text, make_compat_str, open_filename, parse_pdf_date

log = logging.getLogger(__name__)

INFO_KEYS = (
    "Title",
    "Author",
    "Subject",
    "Keywords",
    "Creator",
    "Producer",
    "CreationDate",
    "ModDate",
)


class FontInfo(NamedTuple):
    pageno: int
    resource: str
    subtype: str
    basefont: str
    encoding: str
    width_range: tuple[int, int] | None
    tounicode: bool


def read_pdf(pdf_file: FileOrName | bytes) -> bytes:
    """Reads the whole document into memory.

    :param pdf_file: a path, a binary file-like object or the bytes
        of the document.
    """
    if isinstance(pdf_file, bytes):
        return pdf_file
    with open_filename(pdf_file, "rb") as fp:
        return fp.read()


def load_document(pdf_file: FileOrName | bytes, caching: bool = True) -> PDFDocument:
    return PDFDocument(PDFParser(read_pdf(pdf_file)), caching=caching)


def iter_pages(
    doc: PDFDocument,
    page_numbers: Container[int] | None = None,
    maxpages: int = 0,
) -> Iterator[tuple[int, PDFPage]]:
    """Yields (zero-based page number, page) for the selected pages."""
    for pageno, page in enumerate(PDFPage.create_pages(doc)):
        if maxpages and maxpages <= pageno:
            break
        if page_numbers and pageno not in page_numbers:
            continue
        yield (pageno, page)


def extract_text_to_fp(
    pdf_file: FileOrName | bytes,
    outfp: AnyIO,
    page_numbers: Container[int] | None = None,
    maxpages: int = 0,
    caching: bool = True,
    codec: str = "utf-8",
) -> None:
    """Parses text from pdf_file and writes to outfp file-like object.

    Each page ends with a form feed.

    :param pdf_file: a path, a binary file-like object or the bytes
        of the document.
    :param outfp: a text or binary file-like object to write the text to.
    :param page_numbers: zero-indexed page numbers to operate on.
    :param maxpages: How many pages to stop parsing after
    :param caching: If resources should be cached
    :param codec: Text encoding used for binary output streams
    :return: nothing, acting as it does on two streams. Use StringIO to get
        strings.
    """
    doc = load_document(pdf_file, caching=caching)
    rsrcmgr = PDFResourceManager(caching=caching)
    device = TextConverter(rsrcmgr, outfp, codec=codec)
    interpreter = PDFPageInterpreter(rsrcmgr, device)
    for _, page in iter_pages(doc, page_numbers, maxpages):
        interpreter.process_page(page)
    device.close()


def extract_text(
    pdf_file: FileOrName | bytes,
    page_numbers: Container[int] | None = None,
    maxpages: int = 0,
    caching: bool = True,
) -> str:
    """Parse and return the text contained in a PDF file.

    :param pdf_file: Path to the PDF file to be worked on
    :param page_numbers: List of zero-indexed page numbers to extract.
    :param maxpages: The maximum number of pages to parse
    :param caching: If resources should be cached
    :return: a string containing all of the text extracted.
    """
    with StringIO() as output_string:
        extract_text_to_fp(
            pdf_file,
            output_string,
            page_numbers=page_numbers,
            maxpages=maxpages,
            caching=caching,
        )
        return output_string.getvalue()


def iter_chars(
    pdf_file: FileOrName | bytes,
    page_numbers: Container[int] | None = None,
    maxpages: int = 0,
    caching: bool = True,
) -> Iterator[tuple[int, CharRecord]]:
    """Yields (page number, character record) for every glyph.

    Pages are interpreted one at a time, when the previous page's
    records have been consumed.
    """
    doc = load_document(pdf_file, caching=caching)
    rsrcmgr = PDFResourceManager(caching=caching)
    device = CharRecorder(rsrcmgr)
    interpreter = PDFPageInterpreter(rsrcmgr, device)
    for pageno, page in iter_pages(doc, page_numbers, maxpages):
        interpreter.process_page(page)
        records = device.records
        device.records = []
        for record in records:
            yield (pageno, record)


def extract_raw_content(
    pdf_file: FileOrName | bytes,
    page_numbers: Container[int] | None = None,
    maxpages: int = 0,
    caching: bool = True,
) -> Iterator[tuple[int, bytes]]:
    """Yields (page number, decoded content) without interpreting it."""
    doc = load_document(pdf_file, caching=caching)
    for pageno, page in iter_pages(doc, page_numbers, maxpages):
        yield (pageno, get_content_data(page.contents))


def extract_fonts(
    pdf_file: FileOrName | bytes,
    page_numbers: Container[int] | None = None,
    maxpages: int = 0,
    caching: bool = True,
) -> Iterator[FontInfo]:
    """Yields a FontInfo for every font resource of the selected pages."""
    doc = load_document(pdf_file, caching=caching)
    rsrcmgr = PDFResourceManager(caching=caching)
    interpreter = PDFPageInterpreter(rsrcmgr, CharRecorder(rsrcmgr))
    for pageno, page in iter_pages(doc, page_numbers, maxpages):
        interpreter.init_resources(page.resources)
        for fontid, font in sorted(interpreter.fontmap.items(), key=lambda x: str(x[0])):
            yield FontInfo(
                pageno=pageno,
                resource=str(fontid),
                subtype=font.subtype,
                basefont=font.basefont,
                encoding=font.encoding_name,
                width_range=font.width_range(),
                tounicode=font.unicode_map is not None,
            )


def _info_value(value: object) -> Any:
    value = resolve1(value)
    if isinstance(value, bytes):
        return decode_text(value)
    if isinstance(value, PSLiteral):
        return literal_name(value)
    return make_compat_str(value)


def get_info(pdf_file: FileOrName | bytes) -> dict[str, Any]:
    """Returns the PDF version and the document information dictionary.

    Dates are returned as datetime objects where they can be parsed.
    """
    doc = load_document(pdf_file)
    result: dict[str, Any] = {"Version": doc.version}
    # doc.info lists the newest update first
    for info in reversed(doc.info):
        for key, value in info.items():
            result[key] = _info_value(value)
    for key in ("CreationDate", "ModDate"):
        if isinstance(result.get(key), str):
            date = parse_pdf_date(result[key])
            if date is not None:
                result[key] = date
    return result
