"""Contract engine — lifecycle, state machine, and authorization."""

from des.access import Action, authorize, require
from des.engine.lifecycle import ContractEngine
from des.engine.state_machine import ContractStateMachine

__all__ = [
    "Action",
    "ContractEngine",
    "ContractStateMachine",
    "authorize",
    "require",
]
