"""
Output layout for downloaded documents and saved page content.

Mirror layout:  <out>/<host>/<path dirs>/<file>
                <out>/pages/<host>/<path dirs>/<name>.<ext>
Flat layout:    <out>/<host>_<file>
                <out>/pages/<host>_<name>.<ext>
"""

import re
from pathlib import Path

from sponge.config import OutputLayout
from sponge.core.content_filter import ContentFilter
from sponge.utils.url_utils import path_segments, safe_host

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

PAGES_DIR = "pages"


def _safe_segment(segment: str) -> str | None:
    """Make a directory name safe; None for segments that must be dropped."""
    cleaned = _UNSAFE_CHARS.sub("_", segment)
    if cleaned in ("", ".", ".."):
        return None
    return cleaned


def page_name(url: str) -> str:
    """File stem for a saved page: ``index`` for the root, else the path joined by ``_``."""
    segments = path_segments(url)
    if not segments:
        return "index"
    return _UNSAFE_CHARS.sub("_", "_".join(segments)) or "page"


class PathBuilder:
    """
    Computes destination paths under the output directory.

    In the flat layout two URLs can map to the same name; the second and
    later claimants get a ``_N`` suffix before the extension.
    """

    def __init__(
        self,
        output_dir: str | Path,
        layout: OutputLayout | str,
        content_filter: ContentFilter,
    ):
        self.output_dir = Path(output_dir)
        self.layout = OutputLayout(layout)
        self.content_filter = content_filter
        self._claims: dict[Path, str] = {}

    def _dirs(self, url: str, drop_last: bool) -> list[str]:
        segments = path_segments(url)
        if drop_last and segments:
            segments = segments[:-1]
        return [s for s in (_safe_segment(seg) for seg in segments) if s]

    def document_path(self, url: str, content_type: str | None = None) -> Path:
        """
        Destination for a downloaded document.

        Args:
            url: Document URL.
            content_type: Content type from a HEAD probe, if any.

        Returns:
            The path the document should be written to.
        """
        filename = self.content_filter.sanitize_filename(url, content_type)

        if self.layout == OutputLayout.MIRROR:
            return self.output_dir.joinpath(safe_host(url), *self._dirs(url, drop_last=True), filename)

        return self._claim(self.output_dir / f"{safe_host(url)}_{filename}", url)

    def page_path(self, url: str, extension: str) -> Path:
        """Destination for saved page content."""
        filename = f"{page_name(url)}.{extension}"
        pages = self.output_dir / PAGES_DIR

        if self.layout == OutputLayout.MIRROR:
            segments = path_segments(url)
            drop_last = bool(segments) and "." in segments[-1]
            return pages.joinpath(safe_host(url), *self._dirs(url, drop_last=drop_last), filename)

        return self._claim(pages / f"{safe_host(url)}_{filename}", url)

    def _claim(self, path: Path, url: str) -> Path:
        """Reserve a flat-layout path for a URL, suffixing on collision."""
        owner = self._claims.get(path)
        if owner is None or owner == url:
            self._claims[path] = url
            return path

        counter = 1
        while True:
            candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
            owner = self._claims.get(candidate)
            if owner is None or owner == url:
                self._claims[candidate] = url
                return candidate
            counter += 1
