"""
Модуль для загрузки и валидации конфигурации SiteAudit.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
from urllib.parse import urlsplit

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
    model_validator,
)

from site_audit import __version__
from site_audit.crawler.models import UrlType
from site_audit.crawler.renderer import RenderingEngine

__all__ = ("CrawlConfig", "build_config", "load_config", "DEFAULT_AXE_SCRIPT")

DEFAULT_AXE_SCRIPT = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"


class CrawlConfig(BaseModel):
    """Конфигурация для одного запуска обхода."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    seeds: List[HttpUrl] = Field(..., min_length=1, description="Начальные URL для обхода.")
    internal_domains: List[str] = Field(
        default_factory=list, description="Домены, считающиеся внутренними (хосты seeds добавляются всегда)."
    )
    timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос или рендер (секунд).")
    follow_redirects: bool = Field(False, description="Добавлять цели редиректов в очередь.")
    skip_url_types: List[UrlType] = Field(default_factory=list, description="Типы URL, которые не сканируются.")
    skip_domains: List[str] = Field(default_factory=list, description="Домены, которые не сканируются.")
    skip_patterns: List[str] = Field(default_factory=list, description="Regex: совпавшие URL не сканируются.")
    rendering_engine: RenderingEngine = Field(RenderingEngine.CHROMIUM, description="Движок рендеринга.")
    save_screenshots: bool = Field(False, description="Сохранять скриншоты внутренних страниц.")
    full_page_screenshots: bool = Field(False, description="Скриншот всей страницы, а не только viewport.")
    report_path: Path = Field(Path("reports"), description="Папка для отчётов и скриншотов.")
    user_agent: str = Field(f"SiteAudit/{__version__}", min_length=1, description="Заголовок User-Agent.")
    request_headers: Dict[str, str] = Field(default_factory=dict, description="Дополнительные заголовки.")
    viewport_width: int = Field(1920, gt=0)
    viewport_height: int = Field(1080, gt=0)
    axe_script: str = Field(DEFAULT_AXE_SCRIPT, description="URL или путь к axe.min.js.")
    max_concurrency: Optional[int] = Field(None, ge=1, description="Лимит одновременных запросов в раунде.")

    @field_validator("internal_domains", "skip_domains", mode="after")
    @classmethod
    def _lower_domains(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(d.strip().lower() for d in v if d.strip()))

    @field_validator("skip_patterns", mode="after")
    @classmethod
    def _check_patterns(cls, v: List[str]) -> List[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Неправильное регулярное выражение {pattern!r}: {exc}") from exc
        return v

    @model_validator(mode="before")
    @classmethod
    def _add_seed_hosts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        seeds = data.get("seeds") or []
        if isinstance(seeds, str):
            seeds = [seeds]
            data = {**data, "seeds": seeds}
        domains = list(data.get("internal_domains") or [])
        for seed in seeds:
            host = urlsplit(str(seed)).hostname
            if host and host.lower() not in domains:
                domains.append(host.lower())
        return {**data, "internal_domains": domains}

    @property
    def seed_urls(self) -> List[str]:
        return [str(s) for s in self.seeds]


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
    """Читает YAML или JSON и возвращает сырые данные конфигурации."""
    path_obj = Path(path).expanduser().resolve()
    if not path_obj.is_file():
        raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _read_yaml(path_obj)
    if suffix == ".json":
        return _read_json(path_obj)
    raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")


def build_config(
    base: Optional[Mapping[str, Any]] = None, overrides: Optional[Mapping[str, Any]] = None
) -> CrawlConfig:
    """
    Объединяет данные из файла с параметрами командной строки.
    Значения None в overrides игнорируются, списки дополняют значения из файла.
    """
    data: Dict[str, Any] = dict(base or {})
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            data[key] = list(data.get(key) or []) + list(value)
        else:
            data[key] = value
    return CrawlConfig(**data)


def load_config(path: Union[str, Path]) -> CrawlConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlConfig.
    При отсутствии файла бросает FileNotFoundError, при ошибке схемы ValidationError.
    """
    return CrawlConfig(**read_config_file(path))
