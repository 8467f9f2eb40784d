"""Rich-text content model for note bodies.

A note body is a ``Document``: an ordered sequence of ``Span`` objects,
each holding a run of text and the formatting applied to it. Documents are
immutable values; every edit returns a new document, which lets the store
validate an edit completely before anything is committed.
"""
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, StrictBool, StrictInt, StrictStr, ValidationError

from notekeeper.exceptions import FormatError, RangeError


class SpanFormat(BaseModel):
    """Formatting attributes carried by a span of text."""

    bold: StrictBool = False
    italic: StrictBool = False
    underline: StrictBool = False
    strikethrough: StrictBool = False
    code: StrictBool = False
    heading: StrictInt = Field(default=0, ge=0, le=6, description="0 = body text")

    model_config = {"frozen": True, "extra": "forbid"}


class Span(BaseModel):
    """A run of text sharing one set of formatting attributes."""

    text: StrictStr
    style: SpanFormat = Field(default_factory=SpanFormat)

    model_config = {"frozen": True, "extra": "forbid"}


class Document(BaseModel):
    """A structured rich-text document."""

    spans: Tuple[Span, ...] = ()

    model_config = {"frozen": True, "extra": "forbid"}

    @classmethod
    def from_text(cls, text: str, style: Optional[SpanFormat] = None) -> "Document":
        """Build a document holding ``text`` as a single span."""
        if not text:
            return cls()
        return cls(spans=(Span(text=text, style=style or SpanFormat()),))

    @property
    def length(self) -> int:
        """Number of characters in the unformatted text."""
        return sum(len(span.text) for span in self.spans)


def parse(raw: Union[str, bytes, Mapping[str, Any]]) -> Document:
    """Parse a serialized document.

    Args:
        raw: JSON text (``str`` or ``bytes``) or an already decoded mapping.

    Returns:
        The parsed Document.

    Raises:
        FormatError: If the input is not a structurally valid document.
    """
    try:
        if isinstance(raw, (str, bytes, bytearray)):
            return Document.model_validate_json(raw)
        return Document.model_validate(raw)
    except ValidationError as e:
        raise FormatError(
            f"Invalid document structure ({e.error_count()} errors)", original_error=e
        ) from e


def serialize(doc: Document) -> str:
    """Serialize a document to JSON text accepted by :func:`parse`."""
    return doc.model_dump_json()


def plain_text(doc: Document) -> str:
    """Concatenate the text of all spans."""
    return "".join(span.text for span in doc.spans)


def insert_text(
    doc: Document,
    offset: int,
    text: str,
    style: Optional[SpanFormat] = None,
) -> Document:
    """Insert ``text`` as a new span at ``offset``.

    When ``style`` is omitted the inserted text takes the formatting of the
    character before the insertion point (or after it, at offset 0).

    Raises:
        RangeError: If ``offset`` lies outside the document.
    """
    _check_range(doc, offset, offset)
    left, right = _split(doc.spans, offset)
    if style is None:
        if left:
            style = left[-1].style
        elif right:
            style = right[0].style
        else:
            style = SpanFormat()
    return _normalized(left + [Span(text=text, style=style)] + right)


def delete_range(doc: Document, start: int, end: int) -> Document:
    """Remove the text between ``start`` and ``end``.

    Raises:
        RangeError: If the range is reversed or outside the document.
    """
    _check_range(doc, start, end)
    left, rest = _split(doc.spans, start)
    _, right = _split(tuple(rest), end - start)
    return _normalized(left + right)


def apply_format(doc: Document, start: int, end: int, **attrs: Any) -> Document:
    """Set formatting attributes on the text between ``start`` and ``end``.

    Example:
        doc = apply_format(doc, 0, 5, bold=True, heading=1)

    Raises:
        RangeError: If the range is reversed or outside the document.
        FormatError: If an attribute name or value is invalid.
    """
    _check_range(doc, start, end)
    unknown = set(attrs) - set(SpanFormat.model_fields)
    if unknown:
        raise FormatError(f"Unknown formatting attributes: {sorted(unknown)}")

    left, rest = _split(doc.spans, start)
    middle, right = _split(tuple(rest), end - start)
    restyled = []
    for span in middle:
        try:
            style = SpanFormat.model_validate({**span.style.model_dump(), **attrs})
        except ValidationError as e:
            raise FormatError("Invalid formatting value", original_error=e) from e
        restyled.append(Span(text=span.text, style=style))
    return _normalized(left + restyled + right)


def _check_range(doc: Document, start: int, end: int) -> None:
    length = doc.length
    if start < 0 or end < start or end > length:
        raise RangeError(start, end, length)


def _split(spans: Tuple[Span, ...], offset: int) -> Tuple[List[Span], List[Span]]:
    """Split spans at a character offset, cutting the span that straddles it."""
    left: List[Span] = []
    right: List[Span] = []
    pos = 0
    for span in spans:
        end = pos + len(span.text)
        if end <= offset:
            left.append(span)
        elif pos >= offset:
            right.append(span)
        else:
            cut = offset - pos
            left.append(Span(text=span.text[:cut], style=span.style))
            right.append(Span(text=span.text[cut:], style=span.style))
        pos = end
    return left, right


def _normalized(spans: List[Span]) -> Document:
    """Drop empty spans and merge neighbours with identical formatting."""
    merged: List[Span] = []
    for span in spans:
        if not span.text:
            continue
        if merged and merged[-1].style == span.style:
            merged[-1] = Span(text=merged[-1].text + span.text, style=span.style)
        else:
            merged.append(span)
    return Document(spans=tuple(merged))
