# === FILE: page_scout/scanner.py ===
"""
Модуль-обёртка для функции запуска обхода.
"""
from typing import Dict

from page_scout.config import CrawlerConfig
from page_scout.crawler.crawler import AsyncCrawler
from page_scout.crawler.models import PageRecord


async def start_crawl(cfg: CrawlerConfig) -> Dict[str, PageRecord]:
    """
    Запускает асинхронный краулер в контексте и возвращает собранные страницы.

    Parameters
    ----------
    cfg : CrawlerConfig
        Конфигурация обхода.

    Returns
    -------
    Dict[str, PageRecord]
        Нормализованный ключ URL -> данные страницы.
    """
    async with AsyncCrawler(cfg) as crawler:
        pages = await crawler.crawl()
    return pages

__all__ = ["start_crawl"]
