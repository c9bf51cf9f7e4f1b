from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportFonts:
    body: str
    bold: str
    body_size: float
    small_size: float
    title_size: float


@dataclass(frozen=True)
class PageBounds:
    """Content rectangle measured from the top-left corner of the page."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


PageSetupHook = Callable[['FlowContext'], None]


class FlowContext:
    """
    Cursor-based layout over a reportlab canvas.

    ``cursor`` grows downwards from ``bounds.top``; blocks measure themselves,
    call :meth:`ensure_space` with their full height and only then draw. When a
    block does not fit a new page is started and every page-setup hook runs in
    registration order, so recurring chrome (letterhead, footer) is redrawn.
    """

    def __init__(
        self,
        canvas: Any,
        *,
        page_size: tuple[float, float],
        bounds: PageBounds,
        fonts: ReportFonts,
    ):
        self.canvas = canvas
        self.page_width, self.page_height = page_size
        self.bounds = bounds
        self.fonts = fonts
        self.cursor = bounds.top
        self.page_count = 0
        self._page_setup: list[PageSetupHook] = []
        self._page_start = bounds.top
        self._warned: set[str] = set()

    def add_page_setup(self, hook: PageSetupHook) -> None:
        self._page_setup.append(hook)

    def start(self) -> None:
        self.page_count = 1
        self._begin_page()

    def _begin_page(self) -> None:
        self.cursor = self.bounds.top
        for hook in self._page_setup:
            hook(self)
        self._page_start = self.cursor

    def new_page(self) -> None:
        self.canvas.showPage()
        self.page_count += 1
        self._begin_page()

    @property
    def at_page_start(self) -> bool:
        return self.cursor <= self._page_start

    @property
    def remaining(self) -> float:
        return max(self.bounds.bottom - self.cursor, 0.0)

    @property
    def usable_height(self) -> float:
        """Height available on a freshly started page, after page-setup hooks."""
        return max(self.bounds.bottom - self._page_start, 0.0)

    def ensure_space(self, required_height: float) -> bool:
        if self.cursor + required_height <= self.bounds.bottom:
            return False
        if self.at_page_start:
            # Taller than a whole page; a new page would not help.
            return False
        self.new_page()
        return True

    def advance(self, dy: float) -> None:
        self.cursor += dy

    def y(self, top_offset: float) -> float:
        """Canvas y coordinate (origin bottom-left) for a top-down offset."""
        return self.page_height - top_offset

    def string_width(self, text: str, font: str | None = None, size: float | None = None) -> float:
        return stringWidth(text, font or self.fonts.body, size or self.fonts.body_size)

    def wrap_text(
        self,
        text: str,
        width: float,
        font: str | None = None,
        size: float | None = None,
    ) -> list[str]:
        font = font or self.fonts.body
        size = size or self.fonts.body_size
        lines: list[str] = []
        for paragraph in str(text or '').replace('\r\n', '\n').split('\n'):
            wrapped = simpleSplit(paragraph, font, size, max(width, 1.0))
            lines.extend(wrapped or [''])
        return lines or ['']

    def measure_text(
        self,
        text: str,
        width: float,
        font: str | None = None,
        size: float | None = None,
        leading: float | None = None,
    ) -> float:
        size = size or self.fonts.body_size
        leading = leading or line_leading(size)
        return len(self.wrap_text(text, width, font, size)) * leading

    def fit_text(self, text: str, width: float, font: str | None = None, size: float | None = None) -> str:
        """Single line of ``text`` truncated with an ellipsis to fit ``width``."""
        font = font or self.fonts.body
        size = size or self.fonts.body_size
        value = ' '.join(str(text or '').split())
        if stringWidth(value, font, size) <= width:
            return value
        ellipsis = '...'
        while value and stringWidth(value + ellipsis, font, size) > width:
            value = value[:-1]
        return value.rstrip() + ellipsis if value else ''

    def warn_once(self, key: str, message: str, *args: Any) -> None:
        if key in self._warned:
            return
        self._warned.add(key)
        logger.warning(message, *args)


def line_leading(size: float) -> float:
    return round(size * 1.3, 2)
