# orders/services/pipeline.py

"""
Checkout state machine vocabulary.

Validating -> Charging -> Persisting -> AccountingDiscount -> CreditingTokens
-> Notifying -> Done, with Aborted reachable from Validating/Charging.

Each step leaves a StepOutcome. Fatal outcomes short-circuit (the orchestrator
raises); non-fatal ones are recorded and the pipeline moves on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from orders.services.exceptions import CheckoutStepFailure


class CheckoutState(str, Enum):
    VALIDATING = "validating"
    CHARGING = "charging"
    PERSISTING = "persisting"
    ACCOUNTING_DISCOUNT = "accounting_discount"
    CREDITING_TOKENS = "crediting_tokens"
    NOTIFYING = "notifying"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class StepOutcome:
    step: CheckoutState
    ok: bool = True
    skipped: bool = False
    value: Any = None
    error: Exception | None = None
    fatal: bool = False


@dataclass
class CheckoutResult:
    order: Any = None
    state: CheckoutState = CheckoutState.VALIDATING
    steps: list[StepOutcome] = field(default_factory=list)
    payment: Any = None
    tokens_added: int = 0
    email_sent: bool = False
    replayed: bool = False

    def record(self, outcome: StepOutcome) -> StepOutcome:
        self.steps.append(outcome)
        return outcome

    def outcome_for(self, step: CheckoutState) -> StepOutcome | None:
        for outcome in self.steps:
            if outcome.step == step:
                return outcome
        return None

    @property
    def non_fatal_failures(self) -> list[CheckoutStepFailure]:
        return [o.error for o in self.steps if not o.ok and not o.fatal and isinstance(o.error, CheckoutStepFailure)]

    @property
    def needs_reconciliation(self) -> bool:
        outcome = self.outcome_for(CheckoutState.CREDITING_TOKENS)
        return outcome is not None and not outcome.ok
