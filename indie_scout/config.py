"""
Модуль для загрузки и валидации конфигурации краулера IndieScout.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

__all__ = ("QueueConfig", "CrawlerConfig", "load_config", "config_to_dict")

DEFAULT_USER_AGENT = "IndieScoutBot/1.0 (+https://github.com/indie-scout/indie-scout)"


class QueueConfig(BaseModel):
    """Параметры очереди обхода и фонового воркера."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    batch_size: int = Field(10, ge=1, description="Число элементов очереди за один прогон.")
    max_retries: int = Field(3, ge=1, description="Попыток до перевода элемента в failed.")
    worker_timeout: float = Field(15.0, gt=0, description="Таймаут запроса в контексте воркера (секунд).")
    backoff_base_minutes: float = Field(5.0, gt=0, description="База экспоненциальной задержки повтора.")
    max_links_per_site: int = Field(10, ge=0, description="Лимит ссылок для постановки в очередь с сайта.")
    max_links_extract_all: int = Field(100, ge=0, description="Лимит ссылок для хабов (extract_all_links).")
    max_pending: int = Field(5000, ge=0, description="Жесткий лимит на размер pending-очереди.")
    retention_days: int = Field(30, ge=1, description="Возраст completed-элементов для удаления.")
    discovery_priority: int = Field(1, description="Приоритет найденных ссылок.")
    discovery_delay_hours: tuple[float, float] = Field(
        (48.0, 120.0), description="Окно отложенного обхода найденных ссылок (часы)."
    )
    batch_timeout: float = Field(600.0, gt=0, description="Предельная длительность одного прогона (секунд).")
    validation_webhook: Optional[str] = Field(
        None, description="URL, на который отправляется POST после автодобавления сайтов."
    )

    @model_validator(mode="after")
    def _check_delay_window(self) -> QueueConfig:
        low, high = self.discovery_delay_hours
        if low < 0 or high < low:
            raise ValueError("discovery_delay_hours must be a non-negative (low, high) window")
        return self


class CrawlerConfig(BaseModel):
    """Конфигурация краулера и очереди обхода."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="Заголовок User-Agent.")
    accept_language: str = Field("en-US,en;q=0.9,*;q=0.5", description="Заголовок Accept-Language.")
    timeout: float = Field(10.0, gt=0, description="Таймаут на один запрос (секунд).")
    max_retries: int = Field(2, ge=1, description="Число попыток при транспортных ошибках.")
    max_body_bytes: int = Field(5 * 1024 * 1024, gt=0, description="Максимальный размер тела ответа.")
    robots_timeout: float = Field(5.0, gt=0, description="Таймаут загрузки robots.txt (секунд).")
    robots_cache_ttl: float = Field(24 * 3600.0, gt=0, description="Время жизни кеша robots.txt (секунд).")
    robots_failure_delay: float = Field(2.0, ge=0, description="Задержка, если robots.txt недоступен.")
    default_delay: float = Field(1.0, ge=0, description="Задержка между запросами к одному origin.")
    concurrency: int = Field(3, ge=1, description="Размер окна параллельных запросов.")
    window_pause: float = Field(0.5, ge=0, description="Пауза между окнами (секунд).")
    database: Optional[Path] = Field(None, description="Путь к SQLite-базе очереди и каталога.")
    queue: QueueConfig = Field(default_factory=QueueConfig)

    @field_validator("user_agent", mode="before")
    def _strip_user_agent(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    def for_worker(self) -> CrawlerConfig:
        """Копия конфига с таймаутом запросов воркера очереди."""
        return self.model_copy(update={"timeout": self.queue.worker_timeout})


_DEFAULT_CFG = Path("configs/default.yaml")


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


def load_config(path: Union[str, Path, None]) -> CrawlerConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект CrawlerConfig.
    Без пути использует configs/default.yaml, а при его отсутствии значения по умолчанию.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return CrawlerConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return CrawlerConfig(**data)
    except ValidationError:
        raise


def config_to_dict(config: CrawlerConfig) -> Dict[str, Any]:
    """JSON-совместимое представление конфига (для команды `config`)."""
    return config.model_dump(mode="json")
