"""
Reference primitives built on the rulegate core.

- Feed: posts (Notify for authoring, Gate for deletion)
- Graph: follows with two-tier rules (Gate)
- Group: membership (Gate)
- App: registered resources with one default per kind (Gate)
"""

from rulegate.primitives.app import App
from rulegate.primitives.base import Primitive
from rulegate.primitives.feed import Feed
from rulegate.primitives.graph import Graph
from rulegate.primitives.group import Group

__all__ = [
    "App",
    "Feed",
    "Graph",
    "Group",
    "Primitive",
]
