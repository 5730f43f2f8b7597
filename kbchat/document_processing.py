"""Document loading and record building for uploads."""

import datetime
import json
import re
import zipfile
from pathlib import Path

import docx
import pypdf
from docx.opc.exceptions import PackageNotFoundError
from pypdf.errors import PyPdfError

from .config import config
from .models import Document, DocumentType
from .vocabulary import resolve_document_type

logger = config.get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")

TEXT_EXTENSIONS = {".txt", ".md", ".markdown"}
SUPPORTED_EXTENSIONS = {".pdf", ".docx", ".json", *TEXT_EXTENSIONS}


class DocumentLoader:
    """Handles loading of PDF, Word, JSON and plain text documents."""

    @staticmethod
    def load_pdf(file_path: Path) -> str:
        """Load text content from a PDF file.

        Returns:
            The extracted text content from the PDF as a string.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except PyPdfError:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            return "\n".join(pages)

    @staticmethod
    def load_docx(file_path: Path) -> str:
        """Load paragraph and table text from a Word document.

        Returns:
            Paragraphs followed by table rows, one per line.
        """
        try:
            document = docx.Document(str(file_path))
        except (PackageNotFoundError, zipfile.BadZipFile):
            logger.exception("Error loading Word document %s", file_path)
            raise

        parts = [para.text.strip() for para in document.paragraphs if para.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))
        return "\n".join(parts)

    @staticmethod
    def load_txt(file_path: Path) -> str:
        """Load text content from a TXT file.

        Returns:
            The extracted text content from the TXT file as a string.
        """
        with file_path.open(encoding="utf-8") as file:
            text = file.read()
        logger.info("Successfully loaded text file %s", file_path.name)
        return text

    @classmethod
    def load_json(cls, file_path: Path) -> str:
        """Load a JSON file pretty-printed; invalid JSON is kept as raw text.

        Returns:
            Indented JSON text.
        """
        raw = cls.load_txt(file_path)
        try:
            return json.dumps(json.loads(raw), indent=2)
        except json.JSONDecodeError:
            logger.warning("File %s is not valid JSON; using raw text", file_path.name)
            return raw

    @classmethod
    def load_document(cls, file_path: Path) -> str:
        """Load document based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The text content of the document as a string.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext == ".docx":
            return cls.load_docx(file_path)
        if file_ext == ".json":
            return cls.load_json(file_path)
        if file_ext in TEXT_EXTENSIONS:
            return cls.load_txt(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValueError(msg)

    @classmethod
    def extract_text(cls, file_path: Path) -> str:
        """Best-effort extraction: failures are logged and yield empty text.

        Returns:
            Extracted text, or an empty string.
        """
        try:
            return cls.load_document(file_path)
        except (ValueError, PyPdfError, PackageNotFoundError, zipfile.BadZipFile) as exc:
            logger.warning("Could not extract text from %s: %s", file_path.name, exc)
            return ""


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _format_label(file_name: str | None) -> str:
    suffix = Path(file_name).suffix.lower() if file_name else ""
    if suffix == ".pdf":
        return "PDF Document"
    if suffix == ".docx":
        return "Word Document"
    return "Document"


class DocumentBuilder:
    """Turns extracted text plus user metadata into a ``Document``."""

    def __init__(
        self,
        *,
        summary_chars: int | None = None,
        min_extracted_chars: int | None = None,
        embedding_content_chars: int | None = None,
    ) -> None:
        self.summary_chars = summary_chars or config.SUMMARY_CHARS
        self.min_extracted_chars = min_extracted_chars or config.MIN_EXTRACTED_CHARS
        self.embedding_content_chars = (
            embedding_content_chars or config.EMBEDDING_CONTENT_CHARS
        )

    def build(  # noqa: PLR0913
        self,
        owner_id: str,
        text: str,
        *,
        title: str,
        doc_type: str | DocumentType,
        client: str,
        industry: str,
        geography: str = "Global",
        year: str | int | None = None,
        file_name: str | None = None,
    ) -> Document:
        """Build a document record from extracted text and metadata.

        Returns:
            An unsaved ``Document`` without an embedding.

        Raises:
            ValueError: If a required field is missing or the type is unknown.
        """
        title = (title or "").strip()
        client = (client or "").strip()
        industry = (industry or "").strip()
        missing = [
            name
            for name, value in (
                ("title", title),
                ("type", str(doc_type or "").strip()),
                ("client", client),
                ("industry", industry),
            )
            if not value
        ]
        if missing:
            msg = f"Missing required fields: {', '.join(missing)}"
            raise ValueError(msg)

        resolved_type = resolve_document_type(str(doc_type))
        if resolved_type is None:
            valid = ", ".join(doc.value for doc in DocumentType)
            msg = f"Unknown document type {doc_type!r}; expected one of: {valid}"
            raise ValueError(msg)

        content = normalize_whitespace(text or "")
        if len(content) < self.min_extracted_chars:
            logger.info(
                "Extracted %d characters from %s; using metadata only",
                len(content),
                file_name or title,
            )
            content = (
                f"{_format_label(file_name)}: {title}. Industry: {industry}. "
                f"Client: {client}. This is a {resolved_type} document. "
                "Note: Could not extract text content. Please upload as text file "
                "for full content search."
            )

        summary = content[: self.summary_chars]
        if len(content) > self.summary_chars:
            summary += "..."

        tags = [
            value.lower()
            for value in (industry, str(resolved_type), client)
            if value
        ]

        return Document(
            owner_id=owner_id,
            title=title,
            type=resolved_type,
            client=client,
            industry=industry,
            geography=(geography or "Global").strip() or "Global",
            year=str(year) if year else str(datetime.datetime.now(datetime.UTC).year),
            summary=summary,
            content=content,
            tags=tags,
            file_name=file_name,
        )

    def embedding_text(self, document: Document) -> str:
        """Metadata header followed by the leading part of the content.

        Returns:
            Text sent to the embedding model on upload.
        """
        header = (
            f"Document Title: {document.title}\n"
            f"Document Type: {document.type}\n"
            f"Client: {document.client}\n"
            f"Industry: {document.industry}\n\n"
        )
        return header + document.content[: self.embedding_content_chars]
