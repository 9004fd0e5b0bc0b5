import logging
from typing import Dict, List

from flow_engine.errors import DuplicateFlowError, FlowNotFoundError, FlowRegistryFrozenError
from flow_engine.flow import Flow

logger = logging.getLogger(__name__)


class FlowRegistry:
    """
    Process-wide mapping from flow name to definition.

    Populated at startup, then frozen; lookups afterwards are read-only, so no
    locking is needed.
    """

    def __init__(self):
        self._flows: Dict[str, Flow] = {}
        self._frozen = False

    def register(self, flow: Flow) -> None:
        if self._frozen:
            raise FlowRegistryFrozenError(flow.name)
        if flow.name in self._flows:
            raise DuplicateFlowError(flow.name)
        self._flows[flow.name] = flow
        logger.info(f"Registered flow '{flow.name}' with {len(flow.steps)} step(s)")

    def lookup(self, name: str) -> Flow:
        flow = self._flows.get(name)
        if flow is None:
            raise FlowNotFoundError(name)
        return flow

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def names(self) -> List[str]:
        return list(self._flows)

    def __contains__(self, name: str) -> bool:
        return name in self._flows

    def __len__(self) -> int:
        return len(self._flows)
