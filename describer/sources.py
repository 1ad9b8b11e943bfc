"""Work item sources: CSV files of image URLs and command-line image arguments."""
import csv
import logging
import os
from pathlib import Path
from typing import List

from describer.models import WorkItem

logger = logging.getLogger(__name__)


def read_csv_items(path: str | Path) -> List[WorkItem]:
    """
    Read ``image_url[,note]`` rows from a CSV file.

    Blank rows are skipped and repeated URLs are dropped with a warning,
    keeping the first occurrence.
    """
    items: List[WorkItem] = []
    seen = set()
    with open(path, "r", encoding="utf-8", newline="") as f:
        for line_number, row in enumerate(csv.reader(f), start=1):
            row = [cell.strip() for cell in row]
            if not row or not row[0]:
                continue
            url = row[0]
            if url in seen:
                logger.warning(f"Line {line_number}: duplicate image URL {url}; skipping")
                continue
            seen.add(url)
            note = " ".join(cell for cell in row[1:] if cell)
            items.append(WorkItem(image_url=url, note=note))

    logger.info(f"Read {len(items)} items from {path}")
    return items


def item_from_argument(value: str, note: str = "") -> WorkItem:
    """A local file path becomes an inline payload; anything else is treated as a URL."""
    if os.path.isfile(value):
        with open(value, "rb") as f:
            data = f.read()
        return WorkItem(image_data=data, file_name=os.path.basename(value), note=note)
    return WorkItem(image_url=value, note=note)
