from .pdf_text import PdfText, extract_pdf_text, read_pdf_text

__all__ = ["PdfText", "extract_pdf_text", "read_pdf_text"]
