from .excel_parser import ExcelParser, ImportFormatError

__all__ = ["ExcelParser", "ImportFormatError"]
