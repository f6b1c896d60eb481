from .anchors import NOT_FOUND, find_row
from .extractor import extract_data, extract_document, extract_file_id

__all__ = ["NOT_FOUND", "extract_data", "extract_document", "extract_file_id", "find_row"]
