# === FILE: page_scout/config.py ===
"""
Загрузка и валидация конфигурации краулера PageScout.
Схема описана моделью Pydantic; значения можно взять из YAML/JSON-файла
и переопределить аргументами командной строки.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, HttpUrl

DEFAULT_MAX_CONCURRENCY = 10
DEFAULT_MAX_PAGES = 100


class CrawlerConfig(BaseModel):
    """Конфигурация для одного запуска обхода."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(..., description="Стартовый URL обхода.")
    max_concurrency: int = Field(
        DEFAULT_MAX_CONCURRENCY, ge=1, description="Максимум одновременных запросов."
    )
    max_pages: int = Field(DEFAULT_MAX_PAGES, ge=1, description="Жесткий лимит по числу страниц.")
    timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос (секунд).")
    user_agent: str = Field("PageScoutBot/1.0", min_length=1, description="Заголовок User-Agent.")
    retry_times: int = Field(0, ge=0, description="Число повторных попыток при 5xx/429 и сетевых ошибках.")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def read_config_file(path: Union[str, Path]) -> dict[str, Any]:
    """Читает YAML или JSON и возвращает сырой словарь без валидации."""
    path_obj = Path(path).expanduser().resolve()
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path_obj)
    if suffix == ".json":
        return _read_json(path_obj)
    raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")


def load_config(path: Union[str, Path]) -> CrawlerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlerConfig.
    При отсутствии файла бросает FileNotFoundError.
    """
    return CrawlerConfig(**read_config_file(path))


def build_config(path: Union[str, Path, None] = None, **overrides: Any) -> CrawlerConfig:
    """
    Собирает конфиг из файла (если указан) и переопределений.
    Переопределения со значением None игнорируются.
    """
    data: dict[str, Any] = read_config_file(path) if path is not None else {}
    data.update({k: v for k, v in overrides.items() if v is not None})
    return CrawlerConfig(**data)


__all__ = [
    "CrawlerConfig",
    "DEFAULT_MAX_CONCURRENCY",
    "DEFAULT_MAX_PAGES",
    "build_config",
    "load_config",
    "read_config_file",
]
