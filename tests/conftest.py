from datetime import date

import pytest

from database import operations
from planning.calendar import ProductionCalendar
from planning.engagement import EngagementEngine
from planning.models import Task
from planning.resources import ResourceDirectory
from planning.task_graph import TaskGraph
from planning.undo import UndoRedoManager

# Понедельник
PROJECT_START = date(2024, 1, 1)


@pytest.fixture
def graph():
    return TaskGraph()


@pytest.fixture
def directory():
    return ResourceDirectory()


@pytest.fixture
def calendar():
    return ProductionCalendar(project_start=PROJECT_START)


@pytest.fixture
def manager():
    return UndoRedoManager(max_depth=5)


@pytest.fixture
def engine(graph, directory, calendar):
    return EngagementEngine(graph, directory, calendar)


@pytest.fixture
def add_task(graph):
    """Фабрика задач, сразу добавляемых в граф."""
    def _add(name, start=0, duration=1, parent=None, **kwargs):
        return graph.add(Task(name=name, start=start, duration=duration, **kwargs), parent)
    return _add


@pytest.fixture
def store(tmp_path):
    operations.configure_database(f"sqlite:///{tmp_path / 'projects.db'}")
    operations.init_db()
    yield operations
    operations.engine.dispose()
