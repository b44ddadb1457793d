"""Output of the rendered page to the publish directory."""
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PageWriter:
    """Writes the rendered document to a file."""

    def __init__(self, output_path: str = 'index.html'):
        self.output_path = Path(output_path)

    def write(self, document: str) -> Path:
        """
        Write the document as UTF-8, creating parent directories.

        Args:
            document: Rendered HTML

        Returns:
            Path of the written file

        Raises:
            OSError: If the file cannot be written
        """
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self.output_path.write_text(document, encoding='utf-8')
        logger.info(f"{self.output_path} written ({len(document)} characters)")
        return self.output_path
