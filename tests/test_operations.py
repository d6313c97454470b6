from datetime import date

import pytest

from database.migration import export_project, import_project
from database.models import Project, ProjectSnapshot
from planning.models import Task


@pytest.fixture
def project_data(graph, directory, calendar):
    task = graph.add(Task(name="Чертежи", start=0, duration=5))
    resource = directory.create_resource("Анна")
    directory.assign(task.id, resource, 50)
    return export_project(graph, directory, calendar)


def test_save_and_load(store, project_data):
    project_id = store.save_project("Стенд", project_data)

    loaded = store.load_project(project_id)
    assert [t.name for t in loaded.tasks] == ["Чертежи"]
    assert loaded.resource_assignments[0].workload == 50

    project = import_project(loaded)
    assert len(project.graph) == 1
    assert project.calendar.project_start == date(2024, 1, 1)


def test_list_projects(store, project_data):
    assert store.list_projects() == []
    project_id = store.save_project("Стенд", project_data)
    store.save_project("Стенд v2", project_data, project_id=project_id)

    projects = store.list_projects()
    assert len(projects) == 1
    assert projects[0]['name'] == "Стенд v2"
    assert projects[0]['snapshots'] == 2
    assert projects[0]['start_date'] == date(2024, 1, 1)


def test_old_snapshots_are_pruned(store, project_data):
    project_id = store.save_project("Стенд", project_data)
    for _ in range(store.MAX_SNAPSHOTS_PER_PROJECT + 2):
        store.save_project("Стенд", project_data, project_id=project_id)
    assert store.list_projects()[0]['snapshots'] == store.MAX_SNAPSHOTS_PER_PROJECT


def test_save_to_unknown_project(store, project_data):
    with pytest.raises(KeyError):
        store.save_project("Стенд", project_data, project_id=42)


def test_load_legacy_snapshot(store):
    with store.session_scope() as session:
        project = Project(name="Старый проект")
        project.snapshots.append(ProjectSnapshot(format_version=1, data={
            "Resources": [{"Id": "r1", "Name": "Анна", "Role": "Главный специалист", "MaxWorkload": 50}],
        }))
        session.add(project)
        session.flush()
        project_id = project.id

    data = store.load_project(project_id)
    assert data.format_version == 3
    assert data.resources[0].role == 1
    assert data.participation_intervals[0].max_workload == 50


def test_delete_project(store, project_data):
    project_id = store.save_project("Стенд", project_data)
    assert store.delete_project(project_id)
    assert not store.delete_project(project_id)
    assert store.load_project(project_id) is None
    assert store.list_projects() == []
