"""Table and CSV renderings of completed batch results.

Both renderings are pure functions of the result list and raise
:class:`EmptyResultSet` instead of producing empty output.
"""
import datetime
import logging
import os
from pathlib import Path
from typing import List, Optional

from describer.exceptions import EmptyResultSet
from describer.models import ResultRecord, ResultStatus

logger = logging.getLogger(__name__)

CSV_HEADER = ("name", "imageReference", "description")
FILENAME_PREFIX = "image-descriptions"


def completed_results(results: List[ResultRecord]) -> List[ResultRecord]:
    return [r for r in results if r.status == ResultStatus.COMPLETED and r.output]


def normalize_output(text: str) -> str:
    """Collapse every run of whitespace (newlines and tabs included) to one space and trim."""
    return " ".join(text.split())


def strip_extension(name: str) -> str:
    stem, _ = os.path.splitext(name)
    return stem or name


def to_table(results: List[ResultRecord]) -> str:
    """Tab-separated rows of (name, image URL, description), no header, for pasting into a spreadsheet."""
    rows = completed_results(results)
    if not rows:
        raise EmptyResultSet("No completed results to copy")
    return "\n".join(
        "\t".join((normalize_output(strip_extension(r.display_name)),
                   normalize_output(r.image_url),
                   normalize_output(r.output)))
        for r in rows
    )


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def to_csv(results: List[ResultRecord]) -> str:
    rows = completed_results(results)
    if not rows:
        raise EmptyResultSet("No completed results to export")
    lines = [",".join(CSV_HEADER)]
    lines.extend(",".join((_quote(r.display_name), _quote(r.image_url), _quote(r.output))) for r in rows)
    return "\n".join(lines)


def export_filename(today: Optional[datetime.date] = None) -> str:
    today = today or datetime.date.today()
    return f"{FILENAME_PREFIX}_{today.isoformat()}.csv"


def write_csv(results: List[ResultRecord], path: Optional[str | Path] = None) -> Path:
    """Write the CSV export (UTF-8) to ``path``, or to the dated file name in the working directory."""
    content = to_csv(results)
    target = Path(path) if path else Path(export_filename())
    target.write_text(content, encoding="utf-8")
    logger.info(f"Exported {len(completed_results(results))} results to {target}")
    return target
