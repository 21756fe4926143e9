"""Attachment processing for images, PDFs, text and source files.

Turns paths into :class:`~termai.attachments.Attachment` records. Images are
encoded as data URLs, PDFs are reduced to their extracted text with pypdf,
and text or code files are read as UTF-8.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable
import logging
import mimetypes
from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from ..attachments import Attachment, AttachmentKind
from ..exceptions import AttachmentError

LOGGER = logging.getLogger(__name__)

IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".webp"}
)
PDF_EXTENSIONS: frozenset[str] = frozenset({".pdf"})
TEXT_EXTENSIONS: frozenset[str] = frozenset({".txt", ".md", ".markdown"})
CODE_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".go", ".py", ".js", ".ts", ".tsx", ".jsx", ".java", ".c", ".cpp",
        ".cc", ".h", ".hpp", ".rs", ".rb", ".php", ".sh", ".bash", ".yaml",
        ".yml", ".json", ".xml", ".html", ".css", ".sql",
    }
)

_IMAGE_MIME_FALLBACK = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def detect_kind(path: str | Path) -> AttachmentKind | None:
    """Return the attachment kind implied by the file extension."""
    suffix = Path(path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return "image"
    if suffix in PDF_EXTENSIONS:
        return "pdf"
    if suffix in TEXT_EXTENSIONS:
        return "text"
    if suffix in CODE_EXTENSIONS:
        return "code"
    return None


def is_supported(path: str | Path) -> bool:
    return detect_kind(path) is not None


class AttachmentManager:
    """Validate and convert files into attachments.

    ``max_file_size`` is passed in explicitly from the ``[files]`` config
    section.
    """

    def __init__(self, *, max_file_size: int = 10 * 1024 * 1024) -> None:
        self.max_file_size = max_file_size

    def validate_attachment(self, path: str) -> tuple[Path, AttachmentKind]:
        """Resolve ``path`` and check existence, type and size."""
        try:
            resolved = Path(path).expanduser().resolve()
            if not resolved.exists():
                raise AttachmentError(f"File does not exist: {path}")
            if resolved.is_dir():
                raise AttachmentError(f"{path} is a directory, not a file")
            if not resolved.is_file():
                raise AttachmentError(f"Not a file: {path}")
            size = resolved.stat().st_size
        except OSError as exc:
            raise AttachmentError(f"Cannot access {path}: {exc}") from exc

        kind = detect_kind(resolved)
        if kind is None:
            raise AttachmentError(f"Unsupported file type: {resolved.suffix or path}")

        if size > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise AttachmentError(f"File too large: {path} (max {max_mb:.1f}MB)")
        return resolved, kind

    def process_file(self, path: str) -> Attachment:
        """Convert one file into an attachment or raise ``AttachmentError``."""
        resolved, kind = self.validate_attachment(path)
        try:
            if kind == "image":
                mime_type = (
                    mimetypes.guess_type(resolved.name)[0]
                    or _IMAGE_MIME_FALLBACK[resolved.suffix.lower()]
                )
                encoded = base64.b64encode(resolved.read_bytes()).decode("ascii")
                return Attachment(
                    name=resolved.name,
                    kind=kind,
                    payload=f"data:{mime_type};base64,{encoded}",
                    source_path=str(resolved),
                    mime_type=mime_type,
                )
            if kind == "pdf":
                payload = self._extract_pdf_text(resolved)
            else:
                payload = resolved.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise AttachmentError(f"Error reading {path}: {exc}") from exc
        return Attachment(
            name=resolved.name,
            kind=kind,
            payload=payload,
            source_path=str(resolved),
            mime_type="application/pdf" if kind == "pdf" else "text/plain",
        )

    @staticmethod
    def _extract_pdf_text(path: Path) -> str:
        try:
            reader = PdfReader(str(path))
            pages = [page.extract_text() or "" for page in reader.pages]
        except (PyPdfError, ValueError) as exc:
            raise AttachmentError(f"Failed to read PDF {path.name}: {exc}") from exc
        text = "\n\n".join(page.strip() for page in pages if page.strip())
        if not text:
            raise AttachmentError(f"No text content found in PDF: {path.name}")
        return text

    def process_paths(
        self, paths: Iterable[str]
    ) -> tuple[list[Attachment], list[str]]:
        """Process several files; failures are reported per file.

        Returns ``(attachments, errors)``. Successful files are kept even
        when others fail.
        """
        attachments: list[Attachment] = []
        errors: list[str] = []
        for path in paths:
            try:
                attachments.append(self.process_file(path))
            except AttachmentError as exc:
                LOGGER.warning(
                    "attachment.failed",
                    extra={"event": "attachment.failed", "path": path, "reason": str(exc)},
                )
                errors.append(str(exc))
        return attachments, errors

    def scan_directory(self, directory: str) -> tuple[list[Attachment], list[str]]:
        """Process supported files at the top level of ``directory``."""
        root = Path(directory).expanduser()
        try:
            if not root.is_dir():
                return [], [f"{directory} is not a directory"]
            paths = sorted(
                str(child)
                for child in root.iterdir()
                if child.is_file() and is_supported(child)
            )
        except OSError as exc:
            return [], [f"Cannot read directory {directory}: {exc}"]
        if not paths:
            return [], [f"No supported files found in {directory}"]
        return self.process_paths(paths)

    def expand_and_process(
        self, paths: Iterable[str]
    ) -> tuple[list[Attachment], list[str]]:
        """Like :meth:`process_paths`, scanning any directories top level."""
        attachments: list[Attachment] = []
        errors: list[str] = []
        for path in paths:
            try:
                is_directory = Path(path).expanduser().is_dir()
            except OSError:
                is_directory = False
            if is_directory:
                found, failed = self.scan_directory(path)
            else:
                found, failed = self.process_paths([path])
            attachments.extend(found)
            errors.extend(failed)
        return attachments, errors
