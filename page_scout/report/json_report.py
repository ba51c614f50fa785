# page_scout/report/json_report.py

"""
Генерация JSON-отчёта для проекта PageScout.

Сериализация собранных страниц в файл.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Mapping

from page_scout.crawler.models import PageRecord


def pages_to_json(pages: Mapping[str, PageRecord]) -> List[Dict[str, Any]]:
    """Список словарей, отсортированный по ключу страницы; множества становятся списками."""
    return [
        {
            "key": key,
            "url": page.url,
            "h1": page.h1,
            "first_paragraph": page.first_paragraph,
            "outgoing_links": sorted(page.outgoing_links),
            "image_urls": sorted(page.image_urls),
        }
        for key, page in sorted(pages.items())
    ]


def render_json(pages: Mapping[str, PageRecord], output_path: Path | str) -> Path:
    """
    Сохраняет страницы в формате JSON по указанному пути.

    :param pages: отображение ключ -> PageRecord, как его возвращает краулер
    :param output_path: путь к JSON-файлу
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    # Запись в файл с отступами и Unicode
    with output.open('w', encoding='utf-8') as f:
        json.dump(pages_to_json(pages), f, ensure_ascii=False, indent=2)

    return output
