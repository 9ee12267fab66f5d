"""
Ahrefs CSV Parser - Maps Ahrefs keyword exports onto Ahrefs-shaped rows
"""

from typing import Any, Dict, List, Optional, Union
from datetime import date, datetime
import csv
import io
import logging
import re

from app.core.config import settings
from app.utils.error_handlers import ValidationError

logger = logging.getLogger(__name__)

# row field -> accepted headers (case-insensitive exact match, first wins)
COLUMN_ALIASES = {
    "keyword": ["Keyword"],
    "url": ["Current URL", "URL"],
    "position": ["Current position", "Position"],
    "volume": ["Volume"],
    "difficulty": ["KD", "Difficulty"],
    "cpc": ["CPC"],
    "traffic": ["Current organic traffic", "Traffic"],
    "date": ["Current date", "Date"],
    "serp_features": ["SERP features"],
    "previous_traffic": ["Previous organic traffic"],
    "traffic_change": ["Organic traffic change"],
    "previous_position": ["Previous position"],
    "position_change": ["Position change"],
    "previous_date": ["Previous date"],
}

NUMERIC_FIELDS = (
    "position",
    "volume",
    "difficulty",
    "cpc",
    "traffic",
    "previous_traffic",
    "traffic_change",
    "previous_position",
    "position_change",
)

DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y/%m/%d", "%m/%d/%Y", "%d %b %Y", "%b %d, %Y")

MAX_ERRORS_REPORTED = 50


def parse_numeric_value(value: Any) -> Optional[float]:
    """
    Parse a number, stripping currency, thousands separators, percent and <> markers
    """
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    cleaned = re.sub(r"[$,%<>]", "", str(value)).strip()
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_date_value(value: Optional[str], today: Optional[date] = None) -> str:
    """
    Parse a date into YYYY-MM-DD; empty or unparseable values fall back to today
    """
    fallback = (today or datetime.utcnow().date()).isoformat()
    if not value or not str(value).strip():
        return fallback

    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue

    # ISO timestamps with offsets, e.g. 2024-01-05T00:00:00+00:00
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        logger.debug(f"Unparseable Ahrefs date '{text}', using {fallback}")
        return fallback


def validate_upload(file_name: Optional[str], size: int):
    """
    Reject non-CSV uploads and files over the configured limit
    """
    if not file_name:
        raise ValidationError("No file provided")
    if not file_name.lower().endswith(".csv"):
        raise ValidationError("Only CSV files are supported")
    max_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if size > max_bytes:
        raise ValidationError(f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE_MB}MB")
    if size == 0:
        raise ValidationError("Uploaded file is empty")


class AhrefsCSVParser:
    """
    Parses Ahrefs CSV exports (Organic keywords, with or without comparison columns)
    """

    def __init__(self, today: Optional[date] = None):
        self.today = today

    def map_columns(self, headers: List[str]) -> Dict[str, str]:
        """Map CSV headers to row field names"""
        normalized = {}
        for header in headers:
            if header is None:
                continue
            normalized.setdefault(header.strip().lower(), header)

        column_map = {}
        for field, aliases in COLUMN_ALIASES.items():
            for alias in aliases:
                header = normalized.get(alias.lower())
                if header is not None:
                    column_map[field] = header
                    break
        return column_map

    def parse(self, content: Union[str, bytes]) -> Dict[str, Any]:
        """
        Parse CSV content

        Returns:
            {success, rows, errors, total_rows, valid_rows}

        Raises:
            ValidationError: empty file or no keyword column
        """
        if isinstance(content, bytes):
            # utf-8-sig strips the BOM Ahrefs adds; UTF-16 exports are tab separated
            if content.startswith((b"\xff\xfe", b"\xfe\xff")):
                content = content.decode("utf-16")
            else:
                content = content.decode("utf-8-sig", errors="replace")

        sample = content[:4096]
        delimiter = "\t" if sample.count("\t") > sample.count(",") else ","
        reader = csv.DictReader(io.StringIO(content), delimiter=delimiter)
        headers = [h.strip() for h in (reader.fieldnames or []) if h]
        if not headers:
            raise ValidationError("No headers found in CSV file")

        column_map = self.map_columns(reader.fieldnames)
        if "keyword" not in column_map:
            raise ValidationError(
                f'Required column "keyword" not found. Available columns: {", ".join(headers)}'
            )
        logger.info(f"Ahrefs CSV column mapping: {column_map}")

        rows: List[Dict[str, Any]] = []
        errors: List[str] = []
        total_rows = 0

        for row_num, raw in enumerate(reader, start=2):
            if not any((value or "").strip() for value in raw.values() if isinstance(value, str)):
                continue
            total_rows += 1
            try:
                rows.append(self._process_row(raw, column_map, row_num))
            except ValueError as e:
                errors.append(str(e))

        if errors:
            logger.warning(f"Ahrefs CSV: {len(errors)} rows rejected")
        logger.info(f"Parsed {len(rows)}/{total_rows} Ahrefs rows")

        return {
            "success": len(rows) > 0,
            "rows": rows,
            "errors": errors[:MAX_ERRORS_REPORTED],
            "total_rows": total_rows,
            "valid_rows": len(rows)
        }

    def _process_row(self, raw: Dict[str, Any], column_map: Dict[str, str], row_num: int) -> Dict[str, Any]:
        def cell(field: str) -> Optional[str]:
            header = column_map.get(field)
            if header is None:
                return None
            value = raw.get(header)
            return value.strip() if isinstance(value, str) else value

        keyword = cell("keyword")
        if not keyword:
            raise ValueError(f"Row {row_num}: Missing keyword")

        row: Dict[str, Any] = {
            "keyword": keyword,
            "url": cell("url") or None,
            "date": parse_date_value(cell("date"), self.today),
            "serp_features": cell("serp_features") or None,
            "previous_date": parse_date_value(cell("previous_date"), self.today) if cell("previous_date") else None,
        }
        for field in NUMERIC_FIELDS:
            row[field] = parse_numeric_value(cell(field))

        return row
