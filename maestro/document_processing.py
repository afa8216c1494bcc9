"""Page-aware document loading and chunking for the knowledge corpus."""

from pathlib import Path

import pypdf

from .config import config
from .models import KnowledgeChunk

logger = config.get_logger(__name__)

PAGE_BREAK = "\f"


class DocumentLoader:
    """Loads PDF and TXT documents as a list of page texts."""

    @staticmethod
    def load_pdf(file_path: Path) -> list[str]:
        """Load the text of every page of a PDF file.

        Returns:
            Page texts in document order; pages without text are empty strings.
        """
        try:
            with file_path.open("rb") as file:
                pdf_reader = pypdf.PdfReader(file)
                pages = [page.extract_text() or "" for page in pdf_reader.pages]
        except Exception:
            logger.exception("Error loading PDF %s", file_path)
            raise
        else:
            logger.info("Loaded %d pages from %s", len(pages), file_path.name)
            return pages

    @staticmethod
    def load_txt(file_path: Path) -> list[str]:
        """Load a TXT file, treating form feeds as page breaks.

        Returns:
            Page texts; a file without form feeds is a single page.
        """
        try:
            with file_path.open(encoding="utf-8") as file:
                text = file.read()
        except Exception:
            logger.exception("Error loading TXT %s", file_path)
            raise
        else:
            return text.split(PAGE_BREAK)

    @classmethod
    def load_pages(cls, file_path: Path) -> list[str]:
        """Load document pages based on file extension.

        Args:
            file_path: Path to the document file.

        Returns:
            The page texts of the document.

        Raises:
            ValueError: If the file type is not supported.
        """
        file_ext = file_path.suffix.lower()
        if file_ext == ".pdf":
            return cls.load_pdf(file_path)
        if file_ext in {".txt", ".md"}:
            return cls.load_txt(file_path)
        msg = f"Unsupported file type: {file_ext}"
        raise ValueError(msg)


class PageChunker:
    """Splits page text into overlapping chunks numbered from 1 within a page."""

    def __init__(self, chunk_size: int = 1024, overlap: int = 128) -> None:
        """Initialize the PageChunker with chunk size and overlap.

        Args:
            chunk_size: The size of each text chunk.
            overlap: The number of overlapping characters between chunks.

        Raises:
            ValueError: If overlap is not smaller than chunk_size.
        """
        if overlap >= chunk_size:
            msg = f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            raise ValueError(msg)
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk_page(
        self, text: str, page: int, source: str = "document"
    ) -> list[KnowledgeChunk]:
        """Split one page into chunks with contiguous 1-based indexes.

        Returns:
            The page's chunks in reading order.
        """
        chunks: list[KnowledgeChunk] = []
        start = 0
        chunk_index = 1

        while start < len(text):
            end = start + self.chunk_size
            chunk_text = text[start:end]

            # Ensure we don't break in the middle of a word (except for last chunk)
            if end < len(text) and not chunk_text.endswith(" "):
                last_space = chunk_text.rfind(" ")
                # At least half chunk size to prevent too small chunks after adjustment
                if last_space > self.chunk_size // 2:
                    end = start + last_space
                    chunk_text = text[start:end]

            if chunk_text.strip():
                chunks.append(
                    KnowledgeChunk(
                        page=page,
                        chunk_index=chunk_index,
                        content=chunk_text.strip(),
                        source=source,
                    )
                )
                chunk_index += 1

            if end >= len(text):
                break
            start = end - self.overlap

        return chunks

    def chunk_pages(
        self, pages: list[str], source: str = "document"
    ) -> list[KnowledgeChunk]:
        """Chunk every page, numbering pages from 1.

        Returns:
            All chunks of the document, page by page.
        """
        chunks: list[KnowledgeChunk] = []
        for page_number, text in enumerate(pages, start=1):
            chunks.extend(self.chunk_page(text, page_number, source))

        logger.info("Split %d pages into %d chunks", len(pages), len(chunks))
        return chunks
