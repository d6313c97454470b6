from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from database.migration import migrate
from database.models import Base, Project, ProjectSnapshot
from config import DATABASE_URL
from logger import logger

# Создаем соединение с БД
engine = create_engine(DATABASE_URL)
Session = sessionmaker(bind=engine)

# Сколько последних снимков хранить для одного проекта
MAX_SNAPSHOTS_PER_PROJECT = 10


def configure_database(url):
    """
    Переключает хранилище на другую БД (например, временный файл в тестах).

    Args:
        url: URL базы данных SQLAlchemy
    """
    global engine
    engine.dispose()
    engine = create_engine(url)
    Session.configure(bind=engine)
    logger.info(f"Хранилище проектов переключено на {url}")


def init_db():
    """Инициализирует базу данных."""
    logger.info(f"Инициализация базы данных с URL: {engine.url}")
    try:
        Base.metadata.create_all(engine)
        logger.info("База данных успешно инициализирована")
    except Exception as e:
        logger.error(f"Ошибка при инициализации базы данных: {str(e)}")
        raise


@contextmanager
def session_scope():
    """
    Контекстный менеджер для работы с сессиями SQLAlchemy.
    Автоматически выполняет commit при успешном завершении
    и rollback при возникновении исключения.
    """
    session = Session()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Ошибка при работе с БД: {str(e)}")
        raise
    finally:
        session.close()


def save_project(name, data, project_id=None):
    """
    Сохраняет снимок проекта.

    Args:
        name: Название проекта
        data: ProjectData
        project_id: ID существующего проекта (None - создать новый)

    Returns:
        ID проекта
    """
    with session_scope() as session:
        if project_id is None:
            project = Project(name=name)
            session.add(project)
        else:
            project = session.get(Project, project_id)
            if project is None:
                raise KeyError(f"Проект с ID {project_id} не найден")
            project.name = name

        project.start_date = data.start.date() if data.start else None
        project.snapshots.append(ProjectSnapshot(format_version=data.format_version, data=data.to_dict()))

        # Старые снимки удаляются
        while len(project.snapshots) > MAX_SNAPSHOTS_PER_PROJECT:
            project.snapshots.pop(0)

        session.flush()
        logger.info(f"Проект '{name}' сохранен (ID {project.id}, задач: {len(data.tasks)})")
        return project.id


def load_project(project_id):
    """
    Загружает последний снимок проекта, при необходимости мигрируя его.

    Args:
        project_id: ID проекта

    Returns:
        ProjectData или None, если проекта нет
    """
    with session_scope() as session:
        project = session.get(Project, project_id)
        if not project or not project.snapshots:
            logger.warning(f"Проект с ID {project_id} не найден")
            return None

        raw = project.snapshots[-1].data
        return migrate(raw)


def list_projects():
    """
    Returns:
        Список словарей с краткими данными проектов
    """
    with session_scope() as session:
        projects = session.query(Project).order_by(Project.id).all()
        return [
            {
                'id': project.id,
                'name': project.name,
                'start_date': project.start_date,
                'created_at': project.created_at,
                'updated_at': project.updated_at,
                'snapshots': len(project.snapshots)
            }
            for project in projects
        ]


def delete_project(project_id):
    """
    Удаляет проект вместе со всеми снимками.

    Returns:
        True, если проект был удален
    """
    with session_scope() as session:
        project = session.get(Project, project_id)
        if not project:
            return False
        session.delete(project)
        logger.info(f"Проект '{project.name}' удален")
        return True
