"""
Excel Parser - Customer Spreadsheet Import
==========================================

Parses an uploaded Excel or CSV file and auto-detects customer columns.
Supports .xlsx, .xls, and .csv formats.
"""

import io
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

# Common column name variations for auto-detection
NAME_PATTERNS = ['name', 'customer', 'client', 'full_name', 'fullname', 'customer_name', 'client_name']
PHONE_PATTERNS = ['phone', 'mobile', 'cell', 'telephone', 'tel', 'phone_number', 'mobile_number', 'number']
COUNTRY_PATTERNS = ['country', 'country_code', 'countrycode', 'region']
JOB_PATTERNS = ['job', 'job_description', 'description', 'service', 'work', 'notes']

SUPPORTED_EXTENSIONS = ('.csv', '.xlsx', '.xls')


class ImportFormatError(ValueError):
    """The upload cannot be read or has no usable name/phone columns."""
    pass


class ExcelParser:
    """
    Spreadsheet parser with auto-detection of customer columns.

    Usage:
        parser = ExcelParser()
        rows, skipped = parser.parse_bytes(content, "customers.csv", default_country="GB")
        # rows: [{"row": 2, "name": "Jane", "phone": {"countryCode": "GB", "number": "07780587666"},
        #         "job_description": "Boiler service"}, ...]
    """

    def __init__(self):
        self.detected_columns: Dict[str, Optional[str]] = {}

    def parse_bytes(
        self,
        content: bytes,
        filename: str,
        default_country: str = "GB",
    ) -> Tuple[List[Dict], int]:
        """
        Parse an uploaded file.

        Args:
            content: Raw file bytes
            filename: Original filename (its extension selects the reader)
            default_country: Country used for rows without a country column value

        Returns:
            Tuple of (customer rows, number of rows skipped for missing name/phone)
        """
        df = self._read(content, filename)

        # Clean column names
        df.columns = [str(col).strip().lower() for col in df.columns]

        name_col = self._find_column(df.columns, NAME_PATTERNS)
        phone_col = self._find_column(df.columns, PHONE_PATTERNS, exclude=[name_col])
        country_col = self._find_column(df.columns, COUNTRY_PATTERNS, exclude=[name_col, phone_col])
        job_col = self._find_column(df.columns, JOB_PATTERNS, exclude=[name_col, phone_col, country_col])

        self.detected_columns = {
            'name': name_col,
            'phone': phone_col,
            'country': country_col,
            'job': job_col,
        }
        logger.info(f"Detected columns: {self.detected_columns}")

        if not name_col:
            raise ImportFormatError(
                "Could not detect 'Name' column. Please ensure your file has a column with customer names."
            )
        if not phone_col:
            raise ImportFormatError(
                "Could not detect 'Phone' column. Please ensure your file has a column with phone numbers."
            )

        rows = []
        skipped = 0

        # Default RangeIndex: data row i sits on spreadsheet row i + 2
        for index, row in df.iterrows():
            name = self._cell(row, name_col)
            phone = self._clean_phone(self._cell(row, phone_col))

            # Skip empty rows
            if not name or not phone:
                skipped += 1
                continue

            country = self._cell(row, country_col) if country_col else ''
            job = self._cell(row, job_col) if job_col else ''

            rows.append({
                'row': index + 2,
                'name': name,
                'phone': {
                    'countryCode': (country or default_country).lstrip('+').upper(),
                    'number': phone,
                },
                'job_description': job or None,
            })

        logger.info(f"Parsed {len(rows)} customers from {filename} ({skipped} incomplete rows)")
        return rows, skipped

    def _read(self, content: bytes, filename: str) -> pd.DataFrame:
        ext = Path(filename or '').suffix.lower()
        if ext not in SUPPORTED_EXTENSIONS:
            raise ImportFormatError(f"Unsupported file format: {ext or 'unknown'}. Use .xlsx, .xls, or .csv")

        # Read everything as text so phone numbers keep their leading zeros
        try:
            if ext == '.csv':
                return pd.read_csv(
                    io.BytesIO(content), dtype=str, keep_default_na=False, skip_blank_lines=False
                )
            return pd.read_excel(io.BytesIO(content), dtype=str, keep_default_na=False)
        except Exception as e:
            logger.error(f"Failed to read file: {e}")
            raise ImportFormatError(f"Could not read {filename}: {e}") from e

    @staticmethod
    def _cell(row: pd.Series, column: str) -> str:
        value = str(row.get(column, '') or '').strip()
        return '' if value.lower() == 'nan' else value

    def _find_column(
        self,
        columns: List[str],
        patterns: List[str],
        exclude: Optional[List[Optional[str]]] = None,
    ) -> Optional[str]:
        """Find column matching any of the patterns, exact names first."""
        excluded = set(exclude or [])
        candidates = [col for col in columns if col not in excluded]
        for col in candidates:
            if col in patterns:
                return col
        for col in candidates:
            for pattern in patterns:
                if pattern in col:
                    return col
        return None

    def _clean_phone(self, phone: str) -> str:
        """
        Clean phone number.
        Removes spaces, dashes and brackets. A leading + is kept and a
        leading 00 international prefix becomes +.
        """
        if not phone or phone.lower() == 'nan':
            return ''

        cleaned = re.sub(r'[^\d+]', '', phone.strip())
        if cleaned.startswith('00'):
            cleaned = '+' + cleaned[2:]

        # Excel may hand back 7780587666.0 style floats
        if cleaned.endswith('0') and re.fullmatch(r'\+?\d+\.0', phone.strip()):
            cleaned = cleaned[:-1]

        return cleaned if re.search(r'\d', cleaned) else ''
