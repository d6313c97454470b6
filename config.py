import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Загрузка переменных окружения из .env файла
load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    value = os.getenv(name)
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


# Настройки базы данных (хранилище снимков проектов)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///gantt_projects.db")

# Настройки логирования
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE")

# Глубина истории отмены
UNDO_MAX_DEPTH = _env_int("UNDO_MAX_DEPTH", 5)

# Показывать ли выходные в полосе загрузки ресурсов
MARK_WEEKENDS = _env_bool("MARK_WEEKENDS", False)


@dataclass(frozen=True)
class Settings:
    """Явный объект настроек, который хост передает в ядро."""
    database_url: str = DATABASE_URL
    log_level: str = LOG_LEVEL
    log_file: str = LOG_FILE
    undo_max_depth: int = UNDO_MAX_DEPTH
    mark_weekends: bool = MARK_WEEKENDS


def load_settings():
    """
    Читает настройки из окружения заново.

    Returns:
        Settings
    """
    load_dotenv()
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///gantt_projects.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=os.getenv("LOG_FILE"),
        undo_max_depth=_env_int("UNDO_MAX_DEPTH", 5),
        mark_weekends=_env_bool("MARK_WEEKENDS", False),
    )
