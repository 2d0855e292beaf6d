"""Game engine — projection of ledger state into viewer-relative views."""

from rps_arena.engine.state_machine import GameStateMachine, should_offer_reveal

__all__ = ["GameStateMachine", "should_offer_reveal"]
