import pytest

from planning.errors import (
    AlreadyGroupedError, CycleError, DuplicateIdError, RelationNotFoundError, SplitError,
    StructuralError, TaskNotFoundError, ValidationError
)
from planning.models import Task


def test_add_clamps_values(graph):
    task = graph.add(Task(name="A", start=-3, duration=0, complete=2.0, deadline=-1))
    assert (task.start, task.duration, task.complete) == (0, 1, 1.0)
    assert task.deadline == task.end


def test_add_duplicate_id(graph, add_task):
    task = add_task("A")
    with pytest.raises(DuplicateIdError):
        graph.add(Task(name="B", id=task.id))
    assert len(graph) == 1


def test_group_cycle_is_rejected(graph, add_task):
    a = add_task("A")
    b = add_task("B")
    graph.group(a, b)

    with pytest.raises(CycleError):
        graph.group(b, a)

    assert graph.group_relations() == [(a.id, b.id)]
    assert graph.root_tasks == [a]
    assert graph.direct_group_of(b) is a
    assert graph.direct_group_of(a) is None


def test_group_requires_explicit_ungroup(graph, add_task):
    a, b, c = add_task("A"), add_task("B"), add_task("C")
    graph.group(a, c)
    with pytest.raises(AlreadyGroupedError):
        graph.group(b, c)

    graph.ungroup(a, c)
    graph.group(b, c)
    assert graph.direct_group_of(c) is b
    assert not graph.is_group(a)


def test_nested_groups_queries(graph, add_task):
    top = add_task("Top")
    middle = add_task("Middle", parent=top)
    leaf = add_task("Leaf", start=3, duration=4, parent=middle)
    other = add_task("Other", start=1, duration=2, parent=top)

    assert [t.name for t in graph.tasks] == ["Top", "Middle", "Leaf", "Other"]
    assert graph.members_of(top) == [middle, leaf, other]
    assert graph.groups_of(leaf) == [middle, top]
    assert graph.group_bounds(top) == (1, 7)
    assert graph.index_of(other) == 3
    assert graph.index_of("missing") == -1


def test_group_complete_is_weighted(graph, add_task):
    group = add_task("G")
    add_task("A", start=0, duration=2, complete=1.0, parent=group)
    add_task("B", start=2, duration=6, complete=0.5, parent=group)
    assert graph.group_complete(group) == pytest.approx((2 * 1.0 + 6 * 0.5) / 8)


def test_ungroup_places_member_after_top_ancestor(graph, add_task):
    top = add_task("Top")
    middle = add_task("Middle", parent=top)
    leaf = add_task("Leaf", parent=middle)
    tail = add_task("Tail")

    graph.ungroup(middle, leaf)
    assert graph.root_tasks == [top, leaf, tail]
    assert not graph.is_group(middle)

    with pytest.raises(RelationNotFoundError):
        graph.ungroup(middle, leaf)


def test_task_with_relations_cannot_become_group(graph, add_task):
    a, b, c = add_task("A"), add_task("B"), add_task("C")
    graph.relate(a, b)
    with pytest.raises(StructuralError):
        graph.group(a, c)
    with pytest.raises(StructuralError):
        graph.add(Task(name="D"), parent=a)


def test_split_parts_are_contiguous(graph, add_task):
    task = add_task("A", start=2, duration=10)
    first, second = Task(), Task()
    graph.split(task, first, second, 4)

    assert graph.is_split(task)
    assert graph.parts_of(task) == [first, second]
    assert (first.duration, second.duration) == (4, 6)
    assert second.start == first.end
    assert first.name == "A (Часть 1)"

    third = Task()
    graph.split_part(second, third, 2)
    parts = graph.parts_of(task)
    assert [p.duration for p in parts] == [4, 2, 4]
    assert sum(p.duration for p in parts) == 10
    for previous, current in zip(parts, parts[1:]):
        assert current.start == previous.end
    assert (task.start, task.duration) == (2, 10)


def test_split_out_of_range_duration_halves(graph, add_task):
    task = add_task("A", duration=7)
    first, second = Task(), Task()
    graph.split(task, first, second, 12)
    assert (first.duration, second.duration) == (3, 4)


def test_split_rejections(graph, add_task):
    short = add_task("Short", duration=1)
    with pytest.raises(SplitError):
        graph.split(short, Task(), Task())

    group = add_task("Group", duration=4)
    add_task("Member", parent=group)
    with pytest.raises(SplitError):
        graph.split(group, Task(), Task())

    task = add_task("Task", duration=4)
    graph.split(task, Task(), Task())
    with pytest.raises(SplitError):
        graph.split(task, Task(), Task())
    with pytest.raises(SplitError):
        graph.add(Task(name="Child"), parent=task)


def test_part_start_moves_whole_chain(graph, add_task):
    task = add_task("A", start=0, duration=8)
    first, second = Task(), Task()
    graph.split(task, first, second, 4)

    graph.set_start(second, 6)
    assert (first.start, second.start) == (2, 6)
    assert task.start == 2

    graph.set_start(task, 0)
    assert (first.start, second.start) == (0, 4)


def test_part_duration_repacks_chain(graph, add_task):
    task = add_task("A", duration=9)
    parts = [Task(), Task()]
    graph.split(task, parts[0], parts[1], 3)
    third = Task()
    graph.split_part(parts[1], third, 3)

    graph.set_duration(parts[0], 5)
    chain = graph.parts_of(task)
    assert [(p.start, p.duration) for p in chain] == [(0, 5), (5, 3), (8, 3)]
    assert task.duration == 11

    graph.set_end(task, 13)
    assert chain[-1].duration == 5
    assert task.end == 13


def test_split_complete_is_weighted(graph, add_task):
    task = add_task("A", duration=10)
    first, second = Task(), Task()
    graph.split(task, first, second, 4)

    graph.set_complete(first, 1.0)
    assert task.complete == pytest.approx(0.4)
    with pytest.raises(SplitError):
        graph.set_complete(task, 1.0)


def test_join_and_merge(graph, add_task):
    task = add_task("A", duration=9)
    first, second, third = Task(), Task(), Task()
    graph.split(task, first, second, 3)
    graph.split_part(second, third, 3)

    removed = graph.join(first, second)
    assert removed == [second]
    assert [p.duration for p in graph.parts_of(task)] == [6, 3]

    removed = graph.join(first, third)
    assert set(removed) == {first, third}
    assert not graph.is_split(task)
    assert first not in graph
    assert task.duration == 9


def test_restore_split_sorts_parts(graph, add_task):
    task = add_task("A", duration=5)
    late = Task(name="late", start=10, duration=2)
    early = Task(name="early", start=0, duration=3)
    graph.restore_split(task, [late, early])

    assert graph.parts_of(task) == [early, late]
    assert late.start == 3
    assert task.duration == 5


def test_relate_is_advisory(graph, add_task):
    a = add_task("A", start=0, duration=5)
    b = add_task("B", start=1, duration=2)

    assert graph.relate(a, b) is True
    assert graph.relate(a, b) is False
    assert b.start == 1
    assert graph.direct_dependants_of(a) == [b]
    assert graph.direct_precedents_of(b) == [a]


def test_relate_rejections(graph, add_task):
    a, b, c = add_task("A"), add_task("B"), add_task("C")
    graph.relate(a, b)
    graph.relate(b, c)

    with pytest.raises(CycleError):
        graph.relate(c, a)
    with pytest.raises(CycleError):
        graph.relate(a, a)

    group = add_task("G")
    add_task("M", parent=group)
    with pytest.raises(StructuralError):
        graph.relate(group, a)

    assert graph.dependants_of(a) == [b, c]
    assert graph.precedents_of(c) == [b, a]


def test_relate_redirects_parts(graph, add_task):
    a = add_task("A", duration=4)
    b = add_task("B")
    first, second = Task(), Task()
    graph.split(a, first, second)

    graph.relate(second, b)
    assert graph.dependency_edges() == [(a.id, b.id)]
    graph.unrelate(first, b)
    assert not graph.has_relations(a)


def test_unrelate_all(graph, add_task):
    a, b, c = add_task("A"), add_task("B"), add_task("C")
    graph.relate(a, b)
    graph.relate(a, c)
    assert graph.unrelate_all(a) == [b, c]
    assert graph.dependency_edges() == []
    with pytest.raises(RelationNotFoundError):
        graph.unrelate(a, b)


def test_delete_does_not_cascade(graph, add_task):
    a, b = add_task("A"), add_task("B")
    graph.relate(a, b)
    with pytest.raises(StructuralError):
        graph.delete(a)

    graph.unrelate(a, b)
    assert graph.delete(a) == 0
    assert a not in graph
    with pytest.raises(TaskNotFoundError):
        graph.delete(a)


def test_delete_part_is_rejected(graph, add_task):
    task = add_task("A", duration=4)
    first, second = Task(), Task()
    graph.split(task, first, second)
    with pytest.raises(SplitError):
        graph.delete(first)
    with pytest.raises(StructuralError):
        graph.delete(task)


def test_move_is_clamped(graph, add_task):
    a, b, c = add_task("A"), add_task("B"), add_task("C")
    assert graph.move(a, 5) == 2
    assert graph.root_tasks == [b, c, a]
    assert graph.move(b, -1) == 0
    assert graph.move(a, -1) == -1
    assert graph.root_tasks == [b, a, c]


def test_setters_clamp(graph, add_task):
    task = add_task("A", start=2, duration=5)
    graph.set_duration(task, -4)
    assert task.duration == 1
    graph.set_end(task, 0)
    assert task.end == 3
    graph.set_start(task, -10)
    assert task.start == 0
    graph.set_complete(task, 1.7)
    assert task.complete == 1.0
    graph.set_deadline(task, 0)
    assert task.deadline == task.end
    graph.set_deadline(task, None)
    assert task.deadline is None


def test_deadline_follows_end(graph, add_task):
    task = add_task("A", start=0, duration=3, deadline=5)
    states = graph.capture_schedule(task)

    graph.set_duration(task, 10)
    assert task.deadline == task.end == 10
    graph.set_start(task, 4)
    assert task.deadline == task.end == 14
    graph.set_end(task, 20)
    assert task.deadline == 20

    graph.restore_schedule(states)
    assert (task.end, task.deadline) == (3, 5)

    untouched = add_task("B", duration=2)
    graph.set_duration(untouched, 6)
    assert untouched.deadline is None


def test_split_deadline_follows_end(graph, add_task):
    task = add_task("A", duration=4, deadline=6)
    first, second = Task(), Task()
    graph.split(task, first, second)
    graph.set_deadline(second, 4)

    graph.set_duration(first, 5)
    assert second.end == task.end == 7
    assert (task.deadline, second.deadline) == (7, 7)
    assert first.deadline is None


def test_invalid_value_leaves_task_unchanged(graph, add_task):
    task = add_task("A", start=2, duration=5)
    with pytest.raises(ValidationError):
        graph.set_start(task, "послезавтра")
    with pytest.raises(ValidationError):
        graph.set_complete(task, float("nan"))
    assert (task.start, task.duration, task.complete) == (2, 5, 0.0)


def test_project_bounds(graph, add_task):
    assert graph.project_duration() == 0
    add_task("A", start=2, duration=3)
    add_task("B", start=4, duration=6)
    assert (graph.min_start(), graph.max_end(), graph.project_duration()) == (2, 10, 8)


def test_changed_signal_batches(graph, add_task):
    events = []
    graph.changed.connect(lambda **payload: events.append(payload))

    task = add_task("A")
    assert events[-1] == {"event": "add", "task_id": task.id}

    events.clear()
    with graph.batch_update():
        graph.set_name(task, "B")
        graph.set_note(task, "заметка")
        graph.set_collapse(task, True)
    assert events == [{"batch": True}]


def test_capture_and_restore_schedule(graph, add_task):
    task = add_task("A", duration=6)
    first, second = Task(), Task()
    graph.split(task, first, second, 2)

    states = graph.capture_schedule(second)
    assert [s.task_id for s in states] == [task.id, first.id, second.id]

    graph.set_start(task, 5)
    graph.restore_schedule(states)
    assert (task.start, first.start, second.start) == (0, 0, 2)
