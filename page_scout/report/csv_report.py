# File: page_scout/report/csv_report.py
"""page_scout.report.csv_report: CSV-отчёт по страницам, собранным краулером."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from page_scout.crawler.models import PageRecord
from page_scout.logger import logger

CSV_HEADERS: Sequence[str] = (
    "page_url",
    "h1",
    "first_paragraph",
    "outgoing_link_urls",
    "image_urls",
)

MULTI_VALUE_SEPARATOR = ";"


def _join(values: Iterable[str]) -> str:
    return MULTI_VALUE_SEPARATOR.join(sorted(values))


def page_to_row(page: PageRecord) -> List[str]:
    """Строка CSV для одной страницы; многозначные поля сортируются и склеиваются через ';'."""
    return [
        page.url,
        page.h1,
        page.first_paragraph,
        _join(page.outgoing_links),
        _join(page.image_urls),
    ]


def write_csv_report(
    pages: Mapping[str, PageRecord],
    filename: Union[str, Path] = "report.csv",
) -> Optional[Path]:
    """Сохраняет отчёт в CSV: по строке на страницу, строки отсортированы по ключу.

    Ошибки записи логируются и не пробрасываются; в этом случае возвращается None.

    Пример:
    ```python
    from page_scout.report.csv_report import write_csv_report
    path = write_csv_report(pages, 'reports/report.csv')
    ```
    """
    if not pages:
        logger.warning("No page data to write to CSV report.")
        return None

    output = Path(filename).expanduser().resolve()
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADERS)
            for key in sorted(pages):
                writer.writerow(page_to_row(pages[key]))
    except OSError as exc:
        logger.error("Failed to write CSV report %s: %s", output, exc)
        return None

    logger.info("CSV report written to %s (%d rows)", output, len(pages))
    return output


__all__ = ["CSV_HEADERS", "MULTI_VALUE_SEPARATOR", "page_to_row", "write_csv_report"]
