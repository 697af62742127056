"""Base class for LangGraph graphs to share common behavior."""

from __future__ import annotations

from abc import ABC, abstractmethod
from langgraph.graph import StateGraph

from discovery.utils.logging_config import logger


class BaseGraph(ABC):
    """Abstract base class for the service's LangGraph pipelines.

    Centralizes logging and the compile step so subclasses only define nodes
    and edges.
    """

    def __init__(self, timeout: int = 30):
        self.timeout = timeout
        self.logger = logger

    @abstractmethod
    def build_graph(self) -> StateGraph:
        """Build and return the StateGraph instance."""

    def _log_node_execution(self, node_name: str, state: dict) -> None:
        """Log node start with the request's user id only."""

        self.logger.debug("Executing node: %s user=%s", node_name, state.get("user_id"))

    def _log_node_error(self, node_name: str, error: Exception) -> None:
        """Log node execution error without leaking profile data."""

        self.logger.error("Node %s failed: %s", node_name, str(error))

    def compile(self):
        """Build and compile the graph for execution."""

        graph = self.build_graph()
        return graph.compile()
