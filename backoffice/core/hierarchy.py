"""
Parent/child hierarchy helpers.

Categories and tasks are stored flat, each row pointing at its parent. The
screens that list them want a tree: roots at the top level and every node
carrying its direct children, sorted at every level. Everything here is a
pure function of the input rows; the tree is rebuilt on every request and
never stored.
"""
from django.utils.dateparse import parse_datetime


class CyclicHierarchyError(ValueError):
    """Raised when parent references loop back onto themselves"""

    def __init__(self, cycle):
        self.cycle = list(cycle)
        path = ' -> '.join(str(node_id) for node_id in self.cycle + self.cycle[:1])
        super().__init__(f"Cyclic hierarchy: {path}")


def _check_for_cycles(parent_of):
    """Walk every parent chain once and raise on the first loop found.

    `parent_of` maps node id -> parent id, restricted to parents that exist.
    """
    done = set()
    for start in parent_of:
        if start in done:
            continue
        path = []
        on_path = set()
        current = start
        while current is not None and current not in done:
            if current in on_path:
                raise CyclicHierarchyError(path[path.index(current):])
            on_path.add(current)
            path.append(current)
            current = parent_of.get(current)
        done.update(path)


def build_tree(records, *, id_field='id', parent_field='parent',
               children_field='children', sort_key=None):
    """Build a forest from flat records that reference their parent.

    Args:
        records: iterable of mappings, each with an id and an optional parent id
        id_field: key holding the record id
        parent_field: key holding the parent id (missing or None for top level)
        children_field: key added to every node holding its children
        sort_key: key function applied to siblings and roots, None keeps input order

    Returns:
        list of root nodes. Nodes are shallow copies of the records, the input
        is left untouched.

    A record whose parent does not exist in `records` is promoted to a root.
    Duplicate ids keep the last record seen. Records without an id can not be
    referenced and are returned as roots.

    Raises:
        CyclicHierarchyError: if following parent references loops.
    """
    nodes = {}
    orphans = []
    for record in records:
        node = dict(record)
        node[children_field] = []
        node_id = node.get(id_field)
        if node_id is None:
            orphans.append(node)
        else:
            nodes[node_id] = node

    parent_of = {}
    for node_id, node in nodes.items():
        parent_id = node.get(parent_field)
        if parent_id is not None and parent_id in nodes:
            parent_of[node_id] = parent_id

    _check_for_cycles(parent_of)

    roots = []
    for node_id, node in nodes.items():
        parent_id = parent_of.get(node_id)
        if parent_id is not None:
            nodes[parent_id][children_field].append(node)
        else:
            roots.append(node)
    roots.extend(orphans)

    if sort_key is not None:
        for node in nodes.values():
            node[children_field].sort(key=sort_key)
        roots.sort(key=sort_key)

    return roots


def flatten_tree(roots, children_field='children'):
    """Yield (node, level) pairs depth first, the order an indented list renders in"""
    stack = [(node, 0) for node in reversed(roots)]
    while stack:
        node, level = stack.pop()
        yield node, level
        children = node.get(children_field) or []
        stack.extend((child, level + 1) for child in reversed(children))


def parent_map(records, id_field='id', parent_field='parent'):
    """Map id -> parent id for the given records"""
    return {
        record[id_field]: record.get(parent_field)
        for record in records
        if record.get(id_field) is not None
    }


def ancestor_ids(parents, start_id):
    """Return the ancestors of `start_id`, closest first.

    `parents` maps id -> parent id. Dangling parent ids end the chain.
    """
    ancestors = []
    seen = set()
    current = parents.get(start_id)
    while current is not None and current in parents:
        if current == start_id:
            raise CyclicHierarchyError([start_id] + ancestors)
        if current in seen:
            raise CyclicHierarchyError(ancestors[ancestors.index(current):])
        ancestors.append(current)
        seen.add(current)
        current = parents.get(current)
    return ancestors


def would_create_cycle(parents, node_id, new_parent_id):
    """True if pointing `node_id` at `new_parent_id` would create a loop"""
    if new_parent_id is None:
        return False
    if node_id is None:
        return False
    if new_parent_id == node_id:
        return True
    current = new_parent_id
    seen = set()
    while current is not None and current not in seen:
        if current == node_id:
            return True
        seen.add(current)
        current = parents.get(current)
    return False


def descendant_ids(records, node_id, id_field='id', parent_field='parent'):
    """Ids of every record below `node_id` (the node itself excluded)"""
    children_of = {}
    for record in records:
        parent_id = record.get(parent_field)
        if parent_id is not None:
            children_of.setdefault(parent_id, []).append(record[id_field])

    found = set()
    pending = list(children_of.get(node_id, []))
    while pending:
        child_id = pending.pop()
        if child_id in found or child_id == node_id:
            continue
        found.add(child_id)
        pending.extend(children_of.get(child_id, []))
    return found


# Sort keys

def name_sort_key(node):
    """Alphabetical, case-insensitive"""
    name = node.get('name') or ''
    return (name.casefold(), name)


TASK_STATUS_ORDER = {
    'In Progress': 0,
    'Delayed': 1,
    'Pending': 2,
    'Completed': 3,
}


def _timestamp(value):
    if not value:
        return 0
    if isinstance(value, str):
        value = parse_datetime(value)
        if value is None:
            return 0
    return value.timestamp()


def task_sort_key(node):
    """Status priority first, newest first within a status"""
    status_rank = TASK_STATUS_ORDER.get(node.get('status'), len(TASK_STATUS_ORDER))
    return (status_rank, -_timestamp(node.get('created_at')))
