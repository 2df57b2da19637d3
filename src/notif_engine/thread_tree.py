"""Reply tree reconstruction for a single conversation thread."""

from datetime import datetime, timezone
from typing import Dict

from .post_cache import CacheSnapshot
from .types import ConversationThread, ThreadNode

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _node_time(node: ThreadNode) -> datetime:
    if node.notification is not None and node.notification.indexed_at:
        return node.notification.indexed_at
    if node.post is not None and node.post.indexed_at:
        return node.post.indexed_at
    return _EPOCH


def build_thread_tree(
    thread: ConversationThread, snapshot: CacheSnapshot
) -> ThreadNode:
    """
    Arrange a thread's replies under their parents.

    The root node holds the root post, or nothing when it is not cached yet.
    A reply hangs under its parent when the parent is part of the tree, and under
    the root otherwise. Children are ordered oldest first.
    """
    root = ThreadNode(uri=thread.root_uri, post=snapshot.get(thread.root_uri), is_root=True)
    nodes: Dict[str, ThreadNode] = {thread.root_uri: root}

    for reply in thread.replies:
        if reply.uri not in nodes:
            nodes[reply.uri] = ThreadNode(
                uri=reply.uri, post=snapshot.get(reply.uri), notification=reply
            )

    for reply in thread.replies:
        node = nodes[reply.uri]
        if node is root:
            continue
        parent_uri = node.post.parent_uri if node.post else None
        parent = nodes.get(parent_uri) if parent_uri else None
        if parent is None or parent is node or _is_descendant(parent, node):
            parent = root
        parent.children.append(node)

    _assign_depths(root)
    return root


def _is_descendant(candidate: ThreadNode, ancestor: ThreadNode) -> bool:
    stack = list(ancestor.children)
    while stack:
        cur = stack.pop()
        if cur is candidate:
            return True
        stack.extend(cur.children)
    return False


def _assign_depths(root: ThreadNode) -> None:
    stack = [root]
    while stack:
        node = stack.pop()
        node.children.sort(key=lambda c: (_node_time(c), c.uri))
        for child in node.children:
            child.depth = node.depth + 1
            stack.append(child)
