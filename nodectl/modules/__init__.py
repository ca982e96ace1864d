"""
Node lifecycle modules.
"""
from .attach import attach_nodes
from .client import Client
from .decommission import decommission_node
from .executor import Executor, LocalExecutor, RemoteExecutor, get_executor
from .prep import prep_node

__all__ = [
    'Client',
    'Executor',
    'LocalExecutor',
    'RemoteExecutor',
    'get_executor',
    'prep_node',
    'decommission_node',
    'attach_nodes',
]
