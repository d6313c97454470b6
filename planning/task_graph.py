"""
Граф задач проекта: группы, разделенные задачи и зависимости.

Все связи хранятся в словарях по ID задачи, сами задачи не ссылаются друг
на друга. Каждая операция сначала проверяет структуру и только потом
меняет состояние, поэтому отклоненная операция ничего не портит.
"""
import logging

from planning.errors import (
    AlreadyGroupedError, CycleError, DuplicateIdError, RelationNotFoundError,
    SplitError, StructuralError, TaskNotFoundError
)
from planning.events import Signal
from planning.models import Task, TaskState, as_days, as_fraction

logger = logging.getLogger(__name__)


def _task_id(task):
    return task.id if isinstance(task, Task) else task


class TaskGraph:
    """Граф задач с инвариантами групп, разбиений и зависимостей."""

    def __init__(self):
        self._tasks = {}        # id -> Task, включая части разделенных задач
        self._roots = []        # задачи верхнего уровня в порядке отображения
        self._members = {}      # id группы -> [id участников]
        self._parent = {}       # id участника -> id группы
        self._parts = {}        # id разделенной задачи -> [id частей] по времени
        self._split_of = {}     # id части -> id разделенной задачи
        self._dependants = {}   # id предшественника -> [id последователей]
        self.changed = Signal("task_graph")

    # ------------------------------------------------------------------
    # Вспомогательные методы

    def _get(self, task):
        task_id = _task_id(task)
        found = self._tasks.get(task_id)
        if found is None:
            self._reject(TaskNotFoundError(task_id))
        return found

    def _reject(self, error):
        logger.warning(f"Операция отклонена: {error}")
        raise error

    def _resolve_part(self, task):
        """Часть разделенной задачи заменяется самой разделенной задачей."""
        root_id = self._split_of.get(task.id)
        return self._tasks[root_id] if root_id else task

    def _siblings(self, task_id):
        parent_id = self._parent.get(task_id)
        return self._members[parent_id] if parent_id else self._roots

    def _notify(self, event, task_id=None):
        logger.debug(f"Граф задач: {event} ({task_id})")
        self.changed.emit(event=event, task_id=task_id)

    def batch_update(self):
        """Контекстный менеджер: одно уведомление на всю пакетную операцию."""
        return self.changed.suppressed()

    # ------------------------------------------------------------------
    # Запросы

    def get(self, task_id):
        return self._tasks.get(_task_id(task_id))

    def __contains__(self, task):
        return _task_id(task) in self._tasks

    def __len__(self):
        return len(self._tasks) - len(self._split_of)

    @property
    def tasks(self):
        """Задачи в порядке отображения (обход в глубину), без частей."""
        result = []
        stack = list(reversed(self._roots))
        while stack:
            task_id = stack.pop()
            result.append(self._tasks[task_id])
            stack.extend(reversed(self._members.get(task_id, [])))
        return result

    @property
    def root_tasks(self):
        return [self._tasks[task_id] for task_id in self._roots]

    def is_group(self, task):
        return bool(self._members.get(_task_id(task)))

    def is_member(self, task):
        return _task_id(task) in self._parent

    def is_split(self, task):
        return _task_id(task) in self._parts

    def is_part(self, task):
        return _task_id(task) in self._split_of

    def direct_members_of(self, group):
        return [self._tasks[m] for m in self._members.get(_task_id(group), [])]

    def members_of(self, group):
        """Все потомки группы в порядке отображения."""
        result = []
        stack = list(reversed(self._members.get(_task_id(group), [])))
        while stack:
            task_id = stack.pop()
            result.append(self._tasks[task_id])
            stack.extend(reversed(self._members.get(task_id, [])))
        return result

    def direct_group_of(self, member):
        parent_id = self._parent.get(_task_id(member))
        return self._tasks[parent_id] if parent_id else None

    def groups_of(self, member):
        """Цепочка предков: от непосредственной группы до корневой."""
        result = []
        parent_id = self._parent.get(_task_id(member))
        while parent_id:
            result.append(self._tasks[parent_id])
            parent_id = self._parent.get(parent_id)
        return result

    def parts_of(self, split):
        return [self._tasks[p] for p in self._parts.get(_task_id(split), [])]

    def split_root_of(self, part):
        root_id = self._split_of.get(_task_id(part))
        return self._tasks[root_id] if root_id else None

    def index_of(self, task):
        """Индекс задачи в порядке отображения или -1."""
        task_id = _task_id(task)
        for index, item in enumerate(self.tasks):
            if item.id == task_id:
                return index
        return -1

    def direct_dependants_of(self, precedent):
        return [self._tasks[d] for d in self._dependants.get(_task_id(precedent), [])]

    def direct_precedents_of(self, dependant):
        dependant_id = _task_id(dependant)
        return [self._tasks[p] for p, items in self._dependants.items() if dependant_id in items]

    def dependants_of(self, precedent):
        """Все прямые и косвенные последователи."""
        return self._walk(_task_id(precedent), lambda tid: self._dependants.get(tid, []))

    def precedents_of(self, dependant):
        """Все прямые и косвенные предшественники."""
        return self._walk(_task_id(dependant), lambda tid: [t.id for t in self.direct_precedents_of(tid)])

    def _walk(self, start_id, next_ids):
        seen = []
        visited = set()
        stack = list(reversed(next_ids(start_id)))
        while stack:
            task_id = stack.pop()
            if task_id in visited:
                continue
            visited.add(task_id)
            seen.append(self._tasks[task_id])
            stack.extend(reversed(next_ids(task_id)))
        return seen

    def has_relations(self, task):
        task_id = _task_id(task)
        return bool(self._dependants.get(task_id)) or bool(self.direct_precedents_of(task_id))

    def dependency_edges(self):
        return [(p, d) for p, items in self._dependants.items() for d in items]

    def group_relations(self):
        return [(g, m) for g, items in self._members.items() for m in items]

    def split_relations(self):
        """Пары (разделенная задача, часть) в порядке частей."""
        return [(root, self._tasks[p]) for root, parts in self._parts.items() for p in parts]

    def group_bounds(self, group):
        """
        Границы группы, вычисляемые по участникам.

        Собственные поля start/duration группы не используются, если у нее есть
        участники.

        Returns:
            tuple: (start, end)
        """
        group = self._get(group)
        members = self._members.get(group.id, [])
        if not members:
            return group.start, group.end
        bounds = [self.group_bounds(m) for m in members]
        return min(b[0] for b in bounds), max(b[1] for b in bounds)

    def group_complete(self, group):
        """Процент выполнения группы, взвешенный по длительности участников."""
        group = self._get(group)
        members = self._members.get(group.id, [])
        if not members:
            return group.complete
        total = 0
        weighted = 0.0
        for member_id in members:
            start, end = self.group_bounds(member_id)
            duration = end - start
            total += duration
            weighted += self.group_complete(member_id) * duration
        return weighted / total if total else 0.0

    def min_start(self):
        tasks = self.tasks
        return min(t.start for t in tasks) if tasks else 0

    def max_end(self):
        tasks = self.tasks
        return max(t.end for t in tasks) if tasks else 0

    def project_duration(self):
        return self.max_end() - self.min_start()

    # ------------------------------------------------------------------
    # Добавление и удаление

    def add(self, task, parent=None, index=None):
        """
        Добавляет задачу на верхний уровень или сразу в группу.

        Args:
            task: Новая задача
            parent: Группа, в которую добавляется задача (необязательно)
            index: Позиция среди соседей (по умолчанию в конец)

        Raises:
            DuplicateIdError: если задача с таким ID уже есть
        """
        if task.id in self._tasks:
            self._reject(DuplicateIdError("Задача", task.id))
        if parent is not None:
            parent = self._get(parent)
            if parent.id in self._parts or parent.id in self._split_of:
                self._reject(SplitError(f"Разделенная задача '{parent.name}' не может быть группой"))
            if self.has_relations(parent):
                self._reject(StructuralError(
                    f"Задача '{parent.name}' имеет зависимости и не может быть группой"))

        start = max(0, as_days(task.start, "start"))
        duration = max(1, as_days(task.duration, "duration"))
        complete = as_fraction(task.complete, "complete")
        deadline = as_days(task.deadline, "deadline") if task.deadline is not None else None

        task.start, task.duration, task.complete = start, duration, complete
        if deadline is not None:
            task.deadline = max(deadline, task.end)

        self._tasks[task.id] = task
        if parent is not None:
            _insert(self._members.setdefault(parent.id, []), task.id, index)
            self._parent[task.id] = parent.id
        else:
            _insert(self._roots, task.id, index)
        self._notify("add", task.id)
        return task

    def delete(self, task):
        """
        Удаляет задачу. Связи не удаляются каскадно: сначала их нужно снять.

        Raises:
            SplitError: если это часть разделенной задачи (используйте join/merge)
            StructuralError: если у задачи остались группы, части или зависимости
        """
        task = self._get(task)
        if task.id in self._split_of:
            self._reject(SplitError(f"'{task.name}' является частью разделенной задачи"))
        if self._members.get(task.id) or task.id in self._parent:
            self._reject(StructuralError(f"Задача '{task.name}' входит в группу или является группой"))
        if task.id in self._parts:
            self._reject(StructuralError(f"Задача '{task.name}' разделена на части"))
        if self.has_relations(task):
            self._reject(StructuralError(f"У задачи '{task.name}' есть зависимости"))

        index = self._roots.index(task.id)
        self._roots.remove(task.id)
        self._members.pop(task.id, None)
        self._dependants.pop(task.id, None)
        del self._tasks[task.id]
        self._notify("delete", task.id)
        return index

    # ------------------------------------------------------------------
    # Сроки и свойства

    def set_name(self, task, name):
        task = self._get(task)
        task.name = name or ""
        self._notify("set_name", task.id)

    def set_start(self, task, value):
        """
        Устанавливает начало задачи.

        Разделенная задача сдвигается вместе со всеми частями, сдвиг части
        переносит всю цепочку частей, чтобы они оставались смежными.
        """
        task = self._get(task)
        value = max(0, as_days(value, "start"))

        root_id = self._split_of.get(task.id, task.id)
        if root_id in self._parts:
            root = self._tasks[root_id]
            offset = value - task.start
            # первая часть не может уйти раньше нуля
            offset = max(offset, -root.start)
            if offset == 0:
                return
            root.start += offset
            for part_id in self._parts[root_id]:
                self._tasks[part_id].start += offset
        else:
            if task.start == value:
                return
            task.start = value
        self._fit_deadlines(task.id)
        self._notify("set_start", task.id)

    def set_duration(self, task, value):
        """
        Устанавливает длительность (не меньше одного дня).

        Для разделенной задачи меняется последняя часть, для части
        последующие части сдвигаются вплотную.
        """
        task = self._get(task)
        value = max(1, as_days(value, "duration"))

        if task.id in self._parts:
            parts = self.parts_of(task)
            others = sum(p.duration for p in parts[:-1])
            parts[-1].duration = max(1, value - others)
            self._sync_split(task.id)
        elif task.id in self._split_of:
            task.duration = value
            self._sync_split(self._split_of[task.id])
        else:
            if task.duration == value:
                return
            task.duration = value
        self._fit_deadlines(task.id)
        self._notify("set_duration", task.id)

    def set_end(self, task, value):
        """Устанавливает окончание; окончание не может быть раньше start + 1 день."""
        task = self._get(task)
        value = as_days(value, "end")
        self.set_duration(task, value - task.start)

    def set_complete(self, task, value):
        """
        Устанавливает процент выполнения в диапазоне [0, 1].

        Raises:
            SplitError: для разделенной задачи (процент считается по частям)
        """
        task = self._get(task)
        value = as_fraction(value, "complete")
        if task.id in self._parts:
            self._reject(SplitError(f"Выполнение '{task.name}' вычисляется по ее частям"))
        task.complete = value
        if task.id in self._split_of:
            self._sync_split(self._split_of[task.id])
        self._notify("set_complete", task.id)

    def set_deadline(self, task, value):
        """Устанавливает срок. Срок не может быть раньше окончания задачи."""
        task = self._get(task)
        if value is None:
            task.deadline = None
        else:
            task.deadline = max(as_days(value, "deadline"), task.end)
        self._notify("set_deadline", task.id)

    def set_note(self, task, note):
        task = self._get(task)
        task.note = note
        self._notify("set_note", task.id)

    def set_collapse(self, task, collapsed):
        task = self._get(task)
        task.collapsed = bool(collapsed)
        self._notify("set_collapse", task.id)

    def capture_schedule(self, task):
        """
        Снимает состояние задачи и всех задач, которые меняются вместе с ней.

        Returns:
            list: Список TaskState
        """
        task = self._get(task)
        root_id = self._split_of.get(task.id, task.id)
        ids = [task.id]
        if root_id in self._parts:
            ids = [root_id] + list(self._parts[root_id])
        return [TaskState.capture(self._tasks[i]) for i in ids]

    def restore_schedule(self, states):
        """Возвращает задачам поля из снимка (задачи, которых уже нет, пропускаются)."""
        for state in states:
            task = self._tasks.get(state.task_id)
            if task is not None:
                state.apply(task)
        self._notify("restore_schedule", states[0].task_id if states else None)

    # ------------------------------------------------------------------
    # Группы

    def group(self, parent, member, index=None):
        """
        Добавляет задачу в группу.

        Args:
            parent: Групповая задача
            member: Добавляемая задача (часть заменяется разделенной задачей)
            index: Позиция среди участников группы

        Returns:
            int: Прежняя позиция участника среди задач верхнего уровня

        Raises:
            CycleError: если parent является потомком member
            AlreadyGroupedError: если member уже в группе
            SplitError: если parent разделена или является частью
        """
        parent = self._get(parent)
        member = self._resolve_part(self._get(member))

        if parent.id == member.id:
            self._reject(CycleError(f"Задача '{parent.name}' не может быть группой самой себе"))
        if parent.id in self._parts or parent.id in self._split_of:
            self._reject(SplitError(f"Разделенная задача '{parent.name}' не может быть группой"))
        if member.id in self._parent:
            self._reject(AlreadyGroupedError(
                f"Задача '{member.name}' уже входит в группу '{self._tasks[self._parent[member.id]].name}'"))
        if any(t.id == member.id for t in self.groups_of(parent)):
            self._reject(CycleError(f"Группа '{parent.name}' является потомком '{member.name}'"))
        if self.has_relations(parent):
            self._reject(StructuralError(f"Задача '{parent.name}' имеет зависимости и не может быть группой"))

        previous_index = self._roots.index(member.id)
        self._roots.remove(member.id)
        _insert(self._members.setdefault(parent.id, []), member.id, index)
        self._parent[member.id] = parent.id
        self._notify("group", member.id)
        return previous_index

    def ungroup(self, parent, member, index=None):
        """
        Убирает задачу из группы на верхний уровень.

        Без index задача ставится сразу после корневого предка группы.

        Returns:
            int: Прежняя позиция среди участников группы
        """
        parent = self._get(parent)
        member = self._resolve_part(self._get(member))
        if self._parent.get(member.id) != parent.id:
            self._reject(RelationNotFoundError(
                f"Задача '{member.name}' не входит в группу '{parent.name}'"))

        members = self._members[parent.id]
        previous_index = members.index(member.id)
        members.remove(member.id)
        if not members:
            del self._members[parent.id]
        del self._parent[member.id]

        if index is None:
            ancestors = self.groups_of(parent)
            anchor = ancestors[-1].id if ancestors else parent.id
            index = self._roots.index(anchor) + 1
        _insert(self._roots, member.id, index)
        self._notify("ungroup", member.id)
        return previous_index

    def move(self, task, offset):
        """
        Сдвигает задачу среди соседей по группе. Сроки не меняются.

        Returns:
            int: Фактически примененное смещение
        """
        task = self._resolve_part(self._get(task))
        siblings = self._siblings(task.id)
        index = siblings.index(task.id)
        new_index = min(max(index + int(offset), 0), len(siblings) - 1)
        if new_index == index:
            return 0
        siblings.pop(index)
        siblings.insert(new_index, task.id)
        self._notify("move", task.id)
        return new_index - index

    # ------------------------------------------------------------------
    # Разделенные задачи

    def split(self, task, part_a, part_b, first_duration=None):
        """
        Делит обычную задачу на две смежные части.

        Длительности частей в сумме дают длительность задачи. Если
        first_duration вне диапазона, задача делится пополам.

        Raises:
            SplitError: если задачу нельзя разделить
            DuplicateIdError: если ID частей уже заняты
        """
        task = self._get(task)
        if part_a is part_b or part_a.id == part_b.id:
            self._reject(SplitError("Части разделенной задачи должны различаться"))
        for part in (part_a, part_b):
            if part.id in self._tasks:
                self._reject(DuplicateIdError("Задача", part.id))
        if task.id in self._parts or task.id in self._split_of:
            self._reject(SplitError(f"Задача '{task.name}' уже разделена"))
        if self._members.get(task.id):
            self._reject(SplitError(f"Группа '{task.name}' не может быть разделена"))
        if task.duration < 2:
            self._reject(SplitError(f"Задача '{task.name}' слишком короткая для разделения"))

        first = _split_point(first_duration, task.duration)

        part_a.start, part_a.duration = task.start, first
        part_b.start, part_b.duration = task.start + first, task.duration - first
        for number, part in enumerate((part_a, part_b), start=1):
            part.complete = task.complete
            if not part.name:
                part.name = f"{task.name} (Часть {number})"
            self._tasks[part.id] = part
            self._split_of[part.id] = task.id
        self._parts[task.id] = [part_a.id, part_b.id]
        self._sync_split(task.id)
        self._notify("split", task.id)

    def split_part(self, part, new_part, duration=None):
        """Делит существующую часть, продлевая цепочку частей."""
        part = self._get(part)
        if part.id not in self._split_of:
            self._reject(SplitError(f"Задача '{part.name}' не является частью разделенной задачи"))
        if new_part.id in self._tasks:
            self._reject(DuplicateIdError("Задача", new_part.id))
        if part.duration < 2:
            self._reject(SplitError(f"Часть '{part.name}' слишком короткая для разделения"))

        root_id = self._split_of[part.id]
        parts = self._parts[root_id]
        first = _split_point(duration, part.duration)

        new_part.start = part.start + first
        new_part.duration = part.duration - first
        new_part.complete = part.complete
        part.duration = first
        if not new_part.name:
            new_part.name = f"{self._tasks[root_id].name} (Часть {len(parts) + 1})"

        self._tasks[new_part.id] = new_part
        self._split_of[new_part.id] = root_id
        parts.insert(parts.index(part.id) + 1, new_part.id)
        self._sync_split(root_id)
        self._notify("split", root_id)

    def join(self, part, other):
        """
        Объединяет две части одной разделенной задачи.

        Если частей всего две, задача перестает быть разделенной.

        Returns:
            list: Удаленные части
        """
        part = self._get(part)
        other = self._get(other)
        root_id = self._split_of.get(part.id)
        if root_id is None or self._split_of.get(other.id) != root_id or part.id == other.id:
            self._reject(SplitError("Объединять можно только разные части одной разделенной задачи"))

        parts = self._parts[root_id]
        if len(parts) <= 2:
            return self.merge(root_id)

        total = part.duration + other.duration
        part.complete = (part.complete * part.duration + other.complete * other.duration) / total
        part.duration = total
        parts.remove(other.id)
        del self._split_of[other.id]
        del self._tasks[other.id]
        self._sync_split(root_id)
        self._notify("join", root_id)
        return [other]

    def merge(self, split):
        """
        Собирает разделенную задачу обратно в одну задачу.

        Returns:
            list: Удаленные части
        """
        root = self._get(split)
        if root.id not in self._parts:
            self._reject(SplitError(f"Задача '{root.name}' не разделена"))

        self._sync_split(root.id)
        removed = []
        for part_id in self._parts.pop(root.id):
            del self._split_of[part_id]
            removed.append(self._tasks.pop(part_id))
        self._notify("merge", root.id)
        return removed

    def restore_split(self, split, parts):
        """
        Восстанавливает цепочку частей как есть (при отмене и загрузке).

        Части сортируются по началу и выстраиваются вплотную друг к другу.
        """
        root = self._get(split)
        if len(parts) < 2:
            self._reject(SplitError("Разделенная задача должна иметь хотя бы две части"))
        if root.id in self._parts or root.id in self._split_of or self._members.get(root.id):
            self._reject(SplitError(f"Задачу '{root.name}' нельзя разделить"))
        ids = [p.id for p in parts]
        if len(set(ids)) != len(ids):
            self._reject(SplitError("Части разделенной задачи должны различаться"))
        for part in parts:
            if part.id in self._tasks:
                self._reject(DuplicateIdError("Задача", part.id))

        ordered = sorted(parts, key=lambda p: p.start)
        for part in ordered:
            part.duration = max(1, part.duration)
            part.complete = min(1.0, max(0.0, part.complete))
            self._tasks[part.id] = part
            self._split_of[part.id] = root.id
        self._parts[root.id] = [p.id for p in ordered]
        self._sync_split(root.id)
        self._notify("split", root.id)

    def _sync_split(self, root_id):
        """Выстраивает части вплотную и пересчитывает разделенную задачу."""
        parts = [self._tasks[p] for p in self._parts[root_id]]
        root = self._tasks[root_id]
        for previous, current in zip(parts, parts[1:]):
            current.start = previous.end
        total = sum(p.duration for p in parts)
        root.start = parts[0].start
        root.duration = total
        root.complete = sum(p.complete * p.duration for p in parts) / total
        self._fit_deadlines(root_id)

    def _fit_deadlines(self, task_id):
        """Срок задачи и связанных с ней частей не раньше их окончания."""
        root_id = self._split_of.get(task_id, task_id)
        for item_id in [root_id] + self._parts.get(root_id, []):
            item = self._tasks[item_id]
            if item.deadline is not None and item.deadline < item.end:
                item.deadline = item.end

    # ------------------------------------------------------------------
    # Зависимости

    def relate(self, precedent, dependant, index=None):
        """
        Записывает рекомендательную связь предшественник -> последователь.

        Связь не сдвигает задачи.
        index задает позицию среди последователей (для точной отмены).

        Returns:
            bool: False, если такая связь уже была

        Raises:
            CycleError: при связи задачи с самой собой или при образовании цикла
            StructuralError: если одна из задач является группой
        """
        precedent = self._resolve_part(self._get(precedent))
        dependant = self._resolve_part(self._get(dependant))

        if precedent.id == dependant.id:
            self._reject(CycleError(f"Задача '{precedent.name}' не может зависеть от самой себя"))
        if self.is_group(precedent) or self.is_group(dependant):
            self._reject(StructuralError("Группы не могут участвовать в зависимостях"))
        if dependant.id in self._dependants.get(precedent.id, []):
            return False
        if any(t.id == precedent.id for t in self.dependants_of(dependant)):
            self._reject(CycleError(
                f"Связь '{precedent.name}' -> '{dependant.name}' образует циклическую зависимость"))

        _insert(self._dependants.setdefault(precedent.id, []), dependant.id, index)
        self._notify("relate", dependant.id)
        return True

    def unrelate(self, precedent, dependant):
        """Удаляет связь и возвращает прежнюю позицию последователя."""
        precedent = self._resolve_part(self._get(precedent))
        dependant = self._resolve_part(self._get(dependant))
        items = self._dependants.get(precedent.id, [])
        if dependant.id not in items:
            self._reject(RelationNotFoundError(
                f"Связь '{precedent.name}' -> '{dependant.name}' не найдена"))
        index = items.index(dependant.id)
        # пустой список сохраняет позицию предшественника
        del items[index]
        self._notify("unrelate", dependant.id)
        return index

    def unrelate_all(self, precedent):
        """Удаляет все исходящие связи задачи и возвращает последователей."""
        precedent = self._resolve_part(self._get(precedent))
        removed = [self._tasks[d] for d in self._dependants.pop(precedent.id, [])]
        if removed:
            self._notify("unrelate", precedent.id)
        return removed


def _insert(items, item, index):
    if index is None or index >= len(items):
        items.append(item)
    else:
        items.insert(max(0, index), item)


def _split_point(duration, total):
    """Точка деления: вне диапазона [1, total - 1] делим пополам."""
    if duration is None:
        return total // 2
    duration = as_days(duration, "duration")
    if duration <= 0 or duration >= total:
        return total // 2
    return duration
