"""Document discovery and text extraction.

Handles:
- Recursive discovery of supported files under a directory
- PDF text extraction (page order kept, one newline per page break)
- Plain text and markdown reading (YAML frontmatter removed)
"""
import re
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

import structlog
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ragdesk import config
from ragdesk.exceptions import IngestionError
from ragdesk.rag.models import Document

logger = structlog.get_logger()

# YAML frontmatter (must be at start of file)
FRONTMATTER_PATTERN = re.compile(r"\A---\s*\n(.*?)\n---\s*\n", re.DOTALL)

Extractor = Callable[[Path], str]


def extract_pdf_text(path: Path) -> str:
    """Extract text from every page of a PDF, in page order."""
    reader = PdfReader(str(path))
    pages = [(page.extract_text() or "") for page in reader.pages]
    return "\n".join(pages)


def extract_plain_text(path: Path) -> str:
    """Read a UTF-8 text or markdown file, dropping any YAML frontmatter."""
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".md":
        content = FRONTMATTER_PATTERN.sub("", content, count=1)
    return content


def extract_text(path: Path) -> str:
    """Dispatch to the extractor for the file's type.

    Raises:
        IngestionError: If the file is missing, unsupported or unreadable
    """
    if not path.is_file():
        raise IngestionError(f"Document not found: {path}", source_file=str(path))

    suffix = path.suffix.lower()
    try:
        if suffix == ".pdf":
            return extract_pdf_text(path)
        if suffix in (".md", ".txt"):
            return extract_plain_text(path)
    except (OSError, UnicodeDecodeError, PdfReadError) as e:
        logger.error("document_extraction_failed", path=str(path), error=str(e))
        raise IngestionError(
            f"Failed to extract text from {path.name}: {e}", source_file=str(path)
        ) from e

    raise IngestionError(f"Unsupported document type: {path.suffix}", source_file=str(path))


class DocumentLoader:
    """Finds documents under a directory and extracts their text."""

    def __init__(
        self,
        documents_dir: Path = None,
        extensions: Iterable[str] = None,
        extractor: Optional[Extractor] = None,
    ):
        """Initialize the loader.

        Args:
            documents_dir: Root directory to scan (default from config)
            extensions: File suffixes to pick up (default from config)
            extractor: Function mapping a path to its text (default: extract_text)
        """
        self.documents_dir = Path(documents_dir or config.DOCUMENTS_DIR)
        self.extensions = tuple(
            e.lower() for e in (extensions or config.DOCUMENT_EXTENSIONS)
        )
        self.extractor = extractor or extract_text

    def discover(self) -> List[Path]:
        """Discover supported files, sorted for a stable ingestion order.

        Raises:
            IngestionError: If the documents directory does not exist
        """
        if not self.documents_dir.is_dir():
            raise IngestionError(
                f"Documents directory not found: {self.documents_dir}",
                source_file=str(self.documents_dir),
            )

        files = sorted(
            p
            for p in self.documents_dir.rglob("*")
            if p.is_file() and p.suffix.lower() in self.extensions
        )

        logger.info(
            "documents_discovered",
            count=len(files),
            documents_dir=str(self.documents_dir),
        )
        return files

    def source_name(self, path: Path) -> str:
        """Name used for chunk ids: the path relative to the root directory."""
        return path.relative_to(self.documents_dir).as_posix()

    def load(self) -> Tuple[List[Document], List[IngestionError]]:
        """Extract every discovered document.

        Unreadable documents are skipped and returned as errors. Documents
        with no text are skipped silently.

        Raises:
            IngestionError: If the documents directory does not exist
        """
        documents: List[Document] = []
        errors: List[IngestionError] = []

        for path in self.discover():
            name = self.source_name(path)
            try:
                text = self.extractor(path)
            except IngestionError as e:
                e.source_file = name
                errors.append(e)
                continue
            except Exception as e:
                # Custom extractors may raise anything; skip the document
                logger.error("document_extraction_failed", path=str(path), error=str(e))
                errors.append(IngestionError(str(e), source_file=name))
                continue

            if not text or not text.strip():
                logger.warning("document_has_no_text", source_file=name)
                continue

            documents.append(Document(source_file=name, text=text))

        logger.info(
            "documents_loaded",
            loaded=len(documents),
            failed=len(errors),
        )
        return documents, errors
