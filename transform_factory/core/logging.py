import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the service process."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # pdfminer (via pdfplumber/pdf2docx) is chatty at INFO
    logging.getLogger("pdfminer").setLevel(logging.WARNING)
