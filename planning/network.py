# planning/network.py
"""
Расчет сетевой модели (метод критического пути) и проверки зависимостей.

Расчет только читает граф задач: зависимости носят рекомендательный
характер, поэтому задачи никогда не сдвигаются.
"""
import logging
from collections import deque

from planning.errors import CycleError

logger = logging.getLogger(__name__)


def calculate_network_parameters(graph):
    """
    Рассчитывает сроки, резервы и критический путь по зависимостям графа.

    Args:
        graph: TaskGraph

    Returns:
        Dict с ключами 'network', 'critical_path', 'project_duration'
    """
    nodes = topological_sort(build_nodes(graph))
    if not nodes:
        logger.warning("Граф задач пуст, сетевая модель не построена")
        return {'network': [], 'critical_path': [], 'project_duration': 0}

    finish = forward_pass(nodes)
    backward_pass(nodes, finish)
    critical = sorted((n for n in nodes if n['is_critical']), key=lambda n: n['early_start'])

    logger.info(f"Сетевая модель: {len(nodes)} узлов, длительность {finish} дн., "
                f"на критическом пути {len(critical)}")
    return {'network': nodes, 'critical_path': critical, 'project_duration': finish}


def build_nodes(graph):
    """Узел на каждую задачу графа, кроме групп."""
    return [
        {
            'id': task.id,
            'name': task.name,
            'start': task.start,
            'duration': task.duration,
            'predecessors': [p.id for p in graph.direct_precedents_of(task)],
            'early_start': 0,
            'early_finish': 0,
            'late_start': 0,
            'late_finish': 0,
            'reserve': 0,
            'is_critical': False,
        }
        for task in graph.tasks if not graph.is_group(task)
    ]


def topological_sort(nodes):
    """
    Упорядочивает узлы так, что предшественники идут раньше последователей.

    Порядок независимых узлов сохраняется.

    Raises:
        CycleError: если зависимости образуют цикл
    """
    known = {node['id'] for node in nodes}
    followers = {node['id']: [] for node in nodes}
    pending = {}
    for node in nodes:
        preds = [p for p in node['predecessors'] if p in known]
        pending[node['id']] = len(preds)
        for pred in preds:
            followers[pred].append(node['id'])

    by_id = {node['id']: node for node in nodes}
    ready = deque(node['id'] for node in nodes if pending[node['id']] == 0)
    ordered = []
    while ready:
        node_id = ready.popleft()
        ordered.append(by_id[node_id])
        for follower in followers[node_id]:
            pending[follower] -= 1
            if pending[follower] == 0:
                ready.append(follower)

    if len(ordered) != len(nodes):
        stuck = [by_id[i]['name'] for i, count in pending.items() if count > 0]
        logger.error(f"Циклическая зависимость между задачами: {', '.join(stuck)}")
        raise CycleError(f"Циклическая зависимость: {', '.join(stuck)}")
    return ordered


def forward_pass(nodes):
    """
    Ранние сроки. Ранний старт не раньше заявленного начала задачи.

    Returns:
        Длительность проекта (максимальный ранний финиш)
    """
    early_finish = {}
    for node in nodes:
        start = max([node['start']] + [early_finish[p] for p in node['predecessors'] if p in early_finish])
        node['early_start'] = start
        node['early_finish'] = early_finish[node['id']] = start + node['duration']
    return max(early_finish.values())


def backward_pass(nodes, project_finish):
    """Поздние сроки, полный резерв и признак критичности."""
    latest_allowed = {}
    for node in reversed(nodes):
        finish = latest_allowed.get(node['id'], project_finish)
        node['late_finish'] = finish
        node['late_start'] = finish - node['duration']
        node['reserve'] = node['late_start'] - node['early_start']
        node['is_critical'] = node['reserve'] == 0
        for pred in node['predecessors']:
            latest_allowed[pred] = min(latest_allowed.get(pred, project_finish), node['late_start'])


def calculate_slack(graph):
    """
    Резерв по заявленным срокам.

    Для задачи с последователями: до самого раннего начала последователя,
    иначе до окончания проекта.

    Returns:
        dict: ID задачи -> резерв в днях
    """
    tasks = graph.tasks
    if not tasks:
        return {}

    max_end = graph.max_end()
    slack = {}
    for task in tasks:
        dependants = graph.direct_dependants_of(task)
        if dependants:
            slack[task.id] = min(d.start for d in dependants) - task.end
        else:
            slack[task.id] = max_end - task.end
    return slack


def critical_paths(graph):
    """
    Критические пути по заявленным срокам.

    Каждый путь начинается с задачи, заканчивающейся последней, и содержит
    всех ее предшественников.

    Returns:
        list: Списки задач
    """
    tasks = [t for t in graph.tasks if not graph.is_group(t)]
    if not tasks:
        return []

    max_end = max(t.end for t in tasks)
    return [[task] + graph.precedents_of(task) for task in tasks if task.end == max_end]


def find_dependency_violations(graph):
    """
    Находит связи, где последователь начинается раньше окончания предшественника.

    Returns:
        list: Пары (предшественник, последователь)
    """
    violations = []
    for precedent_id, dependant_id in graph.dependency_edges():
        precedent = graph.get(precedent_id)
        dependant = graph.get(dependant_id)
        if dependant.start < precedent.end:
            violations.append((precedent, dependant))

    if violations:
        logger.info(f"Нарушено зависимостей: {len(violations)}")
    return violations


def get_task_dependencies_graph(nodes):
    """Узлы и ребра сетевой модели для отрисовки хостом."""
    known = {node['id'] for node in nodes}
    return {
        'nodes': [{'id': n['id'], 'label': n['name'], 'is_critical': n['is_critical']} for n in nodes],
        'edges': [{'from': pred, 'to': n['id']} for n in nodes for pred in n['predecessors'] if pred in known],
    }
