# === FILE: page_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска краулера PageScout через командную строку.

Использование:
  page_scout URL [MAX_CONCURRENCY] [MAX_PAGES] [опции]

Аргументы:
  URL              Стартовый URL (обязательный)
  MAX_CONCURRENCY  Макс. число одновременных запросов (default: 10)
  MAX_PAGES        Макс. число страниц (default: 100)

При достижении MAX_PAGES запросы в очереди и в полёте отменяются,
поэтому в отчёте может оказаться меньше MAX_PAGES страниц.

Опции:
  --output, -o PATH   Путь к CSV-отчёту (default: report.csv)
  --json, -j PATH     Дополнительно сохранить JSON-отчёт
  --config, -c PATH   YAML/JSON-конфиг (timeout, user_agent, retry_times, ...)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (только stdout, если не указан)
  --version, -v       Показать версию PageScout

Пример:
  page_scout https://example.com 5 50 --output report.csv
"""
import asyncio
import re
import sys
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from page_scout import __version__
from page_scout.config import DEFAULT_MAX_CONCURRENCY, DEFAULT_MAX_PAGES, build_config
from page_scout.logger import init_logging, logger
from page_scout.report.csv_report import write_csv_report
from page_scout.report.json_report import render_json
from page_scout.scanner import start_crawl

CONTEXT_SETTINGS = dict(help_option_names=["--help"])
USAGE = "page_scout URL [MAX_CONCURRENCY] [MAX_PAGES]"
_NEGATIVE_NUMBER = re.compile(r"-\d[\d.]*")


class PositionalNumbersCommand(click.Command):
    """Команда, где отрицательные числа остаются позиционными аргументами.

    Click would report ``-3`` as an unknown option. Such tokens get a leading
    space so the parser keeps them as positionals; unknown options still fail.
    """

    def parse_args(self, ctx, args):
        takes_value = {
            opt
            for param in self.params
            if isinstance(param, click.Option) and not param.is_flag
            for opt in param.opts + param.secondary_opts
        }
        rewritten = []
        for arg in args:
            if _NEGATIVE_NUMBER.fullmatch(arg) and not (rewritten and rewritten[-1] in takes_value):
                arg = " " + arg
            rewritten.append(arg)
        return super().parse_args(ctx, rewritten)


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def parse_positive_int(raw: Optional[str], default: int, label: str) -> Optional[int]:
    """Возвращает int из *raw*; при неверном значении предупреждает и возвращает *default*."""
    if raw is None:
        return None
    raw = raw.strip()
    try:
        value = int(raw, 10)
    except ValueError:
        value = 0
    if value <= 0:
        logger.warning(
            "%s must be a positive number. Invalid value: %s. Using default: %d",
            label, raw, default,
        )
        return default
    return value


@click.command(cls=PositionalNumbersCommand, context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='PageScout, version %(version)s')
@click.argument('args', nargs=-1, metavar='URL [MAX_CONCURRENCY] [MAX_PAGES]')
@click.option(
    '--output', '-o', 'output',
    default='report.csv',
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Путь к CSV-отчёту'
)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
def cli(args, output, json_output, config_path, log_level, log_file):
    """Обойти сайт начиная с URL и сохранить CSV-отчёт по страницам.

    When MAX_PAGES is reached, requests still queued or in flight are
    cancelled, so the report can hold fewer than MAX_PAGES pages.
    """
    init_logging(level=log_level, log_file=str(log_file) if log_file else None)

    if len(args) > 3:
        print_error(f'Too many arguments provided. Usage: {USAGE}')
    if not args or not args[0].strip():
        print_error(f'Please provide a URL as an argument. Usage: {USAGE}')

    base_url = args[0].strip()
    max_concurrency = parse_positive_int(
        args[1] if len(args) > 1 else None, DEFAULT_MAX_CONCURRENCY, 'Max concurrency'
    )
    max_pages = parse_positive_int(
        args[2] if len(args) > 2 else None, DEFAULT_MAX_PAGES, 'Max pages'
    )

    try:
        cfg = build_config(
            config_path,
            base_url=base_url,
            max_concurrency=max_concurrency,
            max_pages=max_pages,
        )
    except ValidationError as e:
        print_error(f'Invalid URL or configuration: {base_url}\n{e}')
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')

    click.echo(f'Crawling URL: {cfg.base_url}')
    try:
        pages = asyncio.run(start_crawl(cfg))
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    click.echo(f'Finished crawling: {len(pages)} pages.')

    saved_csv = write_csv_report(pages, output)
    if saved_csv:
        click.echo(f'CSV report: {saved_csv}')

    if json_output:
        try:
            saved_json = render_json(pages, json_output)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')


if __name__ == "__main__":
    cli()
