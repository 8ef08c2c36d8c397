"""Parsing of pre-rendered topic fragments into styled text and focusable children.

The content provider delivers HTML fragments where every navigable reference
is an element carrying a ``topic`` (or ``data-topic``) attribute. The same
topic always renders with the same element ids, which is what makes focus
restoration by id possible after a re-fetch.
"""

from dataclasses import dataclass, field
from html.parser import HTMLParser

from rich.text import Text

TOPIC_ATTRIBUTES = ("topic", "data-topic")

BLOCK_TAGS = {"div", "p", "li", "tr", "h1", "h2", "h3", "h4", "pre"}
VOID_TAGS = {"br", "hr", "img", "input", "meta", "link", "wbr"}

# Token classes emitted by the renderer
CLASS_STYLES = {
    "keyword": "bold magenta",
    "type": "cyan",
    "function": "yellow",
    "string": "green",
    "number": "bright_blue",
    "comment": "dim italic",
    "operator": "bright_white",
    "audit-note": "bold red",
}

TOPIC_STYLE = "underline"
FOCUS_STYLE = "reverse bold"
HIGHLIGHT_STYLE = "bold on grey23"


@dataclass(frozen=True)
class FocusableChild:
    """A navigable element inside a rendered fragment."""

    element_id: str
    topic_id: str
    start: int
    end: int
    line: int


@dataclass
class ParsedFragment:
    text: Text
    children: list[FocusableChild] = field(default_factory=list)

    def index_of(self, element_id: str) -> int | None:
        """Return the index of the child with the given element id."""
        for i, child in enumerate(self.children):
            if child.element_id == element_id:
                return i
        return None

    def find(self, element_id: str) -> int | None:
        """Like ``index_of``, falling back to the first child for a topic id."""
        index = self.index_of(element_id)
        if index is not None:
            return index
        for i, child in enumerate(self.children):
            if child.topic_id == element_id:
                return i
        return None


class _FragmentParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.text = Text()
        self.children: list[FocusableChild] = []
        # (tag, start offset, style, topic id, element id)
        self._open: list[tuple[str, int, str | None, str | None, str | None]] = []
        self._occurrences: dict[str, int] = {}

    def _newline(self) -> None:
        if self.text.plain and not self.text.plain.endswith("\n"):
            self.text.append("\n")

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in VOID_TAGS:
            if tag == "br":
                self.text.append("\n")
            return
        attributes = dict(attrs)
        topic_id = next(
            (attributes[a] for a in TOPIC_ATTRIBUTES if attributes.get(a)), None
        )
        element_id = attributes.get("id")
        if topic_id and not element_id:
            n = self._occurrences.get(topic_id, 0)
            self._occurrences[topic_id] = n + 1
            element_id = f"{topic_id}:{n}"
        style = None
        for cls in (attributes.get("class") or "").split():
            if cls in CLASS_STYLES:
                style = CLASS_STYLES[cls]
        self._open.append((tag, len(self.text), style, topic_id, element_id))

    def handle_endtag(self, tag: str) -> None:
        # Close up to the matching tag; stray end tags are ignored.
        for depth in range(len(self._open) - 1, -1, -1):
            if self._open[depth][0] == tag:
                break
        else:
            return
        while len(self._open) > depth:
            open_tag, start, style, topic_id, element_id = self._open.pop()
            end = len(self.text)
            if style and end > start:
                self.text.stylize(style, start, end)
            if topic_id:
                self.text.stylize(TOPIC_STYLE, start, end)
                line = self.text.plain.count("\n", 0, start)
                self.children.append(
                    FocusableChild(element_id, topic_id, start, end, line)
                )
            if open_tag in BLOCK_TAGS:
                self._newline()

    def handle_data(self, data: str) -> None:
        self.text.append(data)


def parse_fragment(html: str) -> ParsedFragment:
    """Parse an HTML fragment into styled text and its ordered focusable children."""
    parser = _FragmentParser()
    parser.feed(html)
    parser.close()
    if parser._open:
        parser.handle_endtag(parser._open[0][0])
    # Inner elements close first; order children by position in the document.
    children = sorted(parser.children, key=lambda c: (c.start, -c.end))
    text = parser.text
    text.rstrip()
    return ParsedFragment(text=text, children=children)


def render_fragment(
    parsed: ParsedFragment, highlight: int | None = None, style: str = FOCUS_STYLE
) -> Text:
    """Return the fragment text with the child at ``highlight`` styled."""
    text = parsed.text.copy()
    if highlight is not None and 0 <= highlight < len(parsed.children):
        child = parsed.children[highlight]
        text.stylize(style, child.start, child.end)
    return text
