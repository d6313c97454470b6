from datetime import datetime

import pytest

from planning.errors import DuplicateIdError, ResourceNotFoundError, ValidationError
from planning.models import ParticipationInterval, Resource, ResourceRole


def test_create_resource_adds_default_interval(directory):
    resource = directory.create_resource("Иван Петров", "Главный специалист")

    assert resource.initials == "ИП"
    assert resource.role is ResourceRole.LEAD_SPECIALIST
    intervals = directory.intervals_of(resource)
    assert len(intervals) == 1
    assert (intervals[0].start, intervals[0].end, intervals[0].max_workload) == (0, None, 100)


def test_add_resource_duplicate(directory):
    resource = directory.add_resource(Resource(name="Анна", role="2"))
    assert resource.role is ResourceRole.CHIEF_CONSTRUCTOR
    with pytest.raises(DuplicateIdError):
        directory.add_resource(Resource(name="Анна", id=resource.id))


def test_get_resource_by_name(directory):
    resource = directory.create_resource("Мария Иванова")
    assert directory.get_resource_by_name("мария иванова") is resource
    assert directory.get_resource_by_name("Петр") is None


def test_update_resource_returns_previous(directory):
    resource = directory.create_resource("Анна")
    previous = directory.update_resource(resource.id, name="Анна К.", role=1)
    assert previous == {'name': "Анна", 'role': ResourceRole.CONSTRUCTOR}
    assert resource.role is ResourceRole.LEAD_SPECIALIST

    with pytest.raises(ValidationError):
        directory.update_resource(resource.id, salary=100)
    with pytest.raises(ResourceNotFoundError):
        directory.update_resource("missing", name="X")


def test_remove_and_restore_resource(directory):
    resource = directory.create_resource("Анна")
    other = directory.create_resource("Борис")
    directory.create_absence(resource, 3, 5, "Отпуск")
    directory.assign("t1", resource.id, 50)
    directory.assign("t1", other.id, 50)

    removed = directory.remove_resource(resource.id)
    assert directory.resources == [other]
    assert directory.assignments_for_resource(resource.id) == []
    assert directory.absences_of(resource.id) == []
    assert len(removed['assignments']) == 1

    directory.restore_resource(removed)
    assert directory.resources == [resource, other]
    assert len(directory.intervals_of(resource)) == 1
    assert directory.is_absent(resource.id, 4)
    assert directory.is_assigned("t1", resource.id)


def test_interval_for_day_latest_created_wins(directory):
    resource = directory.add_resource(Resource(name="Анна"))
    old = directory.add_interval(ParticipationInterval(
        resource.id, 0, None, 100, created_at=datetime(2024, 1, 1)))
    new = directory.add_interval(ParticipationInterval(
        resource.id, 5, 10, 50, created_at=datetime(2024, 2, 1)))

    assert directory.interval_for_day(resource.id, 3) is old
    assert directory.interval_for_day(resource.id, 5) is new
    assert directory.interval_for_day(resource.id, 10) is old
    assert directory.overlapping_intervals(new) == [old]


def test_interval_requires_resource(directory):
    with pytest.raises(ResourceNotFoundError):
        directory.add_interval(ParticipationInterval("missing"))


def test_update_interval_corrects_end(directory):
    resource = directory.create_resource("Анна")
    interval = directory.intervals_of(resource)[0]

    previous = directory.update_interval(interval.id, start=10, end=4, max_workload=120)
    assert previous == {'start': 0, 'end': None, 'max_workload': 100}
    assert (interval.start, interval.end, interval.max_workload) == (10, 11, 100)


def test_update_interval_invalid_value_changes_nothing(directory):
    resource = directory.create_resource("Анна")
    interval = directory.intervals_of(resource)[0]

    with pytest.raises(ValidationError):
        directory.update_interval(interval.id, start=3, end="скоро")
    assert (interval.start, interval.end) == (0, None)


def test_absence_queries(directory):
    resource = directory.create_resource("Анна")
    first = directory.create_absence(resource, 2, 4, "Болезнь")
    second = directory.create_absence(resource, 3, None)

    assert directory.absence_for_day(resource, 2) is first
    assert not directory.is_absent(resource, 4)
    assert (second.start, second.end) == (3, 4)
    assert directory.overlapping_absences(first) == [second]
    assert directory.absences_of(resource) == [first, second]

    directory.update_absence(second.id, start=6)
    assert (second.start, second.end) == (6, 7)

    directory.remove_absence(first.id)
    with pytest.raises(ResourceNotFoundError):
        directory.remove_absence(first.id)


def test_assignments_are_additive(directory):
    resource = directory.create_resource("Анна Смирнова")
    first = directory.assign("t1", resource, 60)
    second = directory.assign("t1", resource, 150)

    assert first.id != second.id
    assert second.workload == 100
    assert len(directory.assignments_for_task("t1")) == 2
    assert directory.resources_for_task("t1") == [resource]
    assert directory.tasks_for_resource(resource) == ["t1"]
    assert directory.initials_for_task("t1") == "АС"

    removed = directory.unassign("t1", resource)
    assert removed == [first, second]
    assert not directory.is_assigned("t1", resource)


def test_assign_unknown_resource(directory):
    with pytest.raises(ResourceNotFoundError):
        directory.assign("t1", "missing")


def test_update_and_remove_assignment(directory):
    resource = directory.create_resource("Анна")
    directory.assign("t0", resource)
    assignment = directory.assign("t1", resource, 40, "черновик")

    previous = directory.update_assignment(assignment.id, workload=130)
    assert previous == {'workload': 40, 'note': "черновик"}
    assert assignment.workload == 100

    removed, index = directory.remove_assignment(assignment.id)
    assert (removed, index) == (assignment, 1)

    directory.assign("t2", resource)
    assert len(directory.unassign_all_from_task("t2")) == 1


def test_ensure_default_intervals(directory):
    first = directory.add_resource(Resource(name="Анна"))
    second = directory.create_resource("Борис")

    assert directory.ensure_default_intervals() == 1
    assert len(directory.intervals_of(first)) == 1
    assert len(directory.intervals_of(second)) == 1
    assert directory.ensure_default_intervals() == 0


def test_load_replaces_content(directory):
    directory.create_resource("Старый")
    resource = Resource(name="Новый")
    directory.load(resources=[resource], intervals=[ParticipationInterval.create_default(resource.id)])
    assert directory.resources == [resource]
    assert len(directory.intervals) == 1

    directory.clear()
    assert directory.resources == []


def test_changed_signal(directory):
    events = []
    directory.changed.connect(lambda **payload: events.append(payload))
    directory.create_resource("Анна")
    assert events == [{"batch": True}]
