"""
Saga bookkeeping for multi-service writes.

A saga is an ordered list of steps, each an async action with an optional
compensating action. Steps run one after the other; when step k fails, the
compensations of steps 1..k-1 run in reverse order and the step's error is
re-raised.
"""

import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger("order_service.saga")

Action = Callable[[], Awaitable[Any]]


class StepStatus(Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    COMPENSATED = "COMPENSATED"


class SagaStep:
    """One action of the saga and the action that undoes it."""

    def __init__(self, name: str, action: Action, compensation: Optional[Action] = None):
        self.name = name
        self.action = action
        self.compensation = compensation
        self.status = StepStatus.PENDING
        self.result = None
        self.error = None
        self.executed_at = None
        self.compensated_at = None

    def __repr__(self):
        return f"SagaStep({self.name}, status={self.status.value})"


class SagaExecution:
    """Runs the steps of one saga and tracks how far it got."""

    def __init__(self, name: str, compensate: bool = True):
        self.name = name
        self.saga_id = str(uuid.uuid4())
        self.compensate = compensate
        self.started_at = None
        self.completed_at = None
        self.steps: List[SagaStep] = []
        self.current_step_index = 0
        self.error = None

    def add_step(self, name: str, action: Action, compensation: Optional[Action] = None) -> SagaStep:
        step = SagaStep(name, action, compensation)
        self.steps.append(step)
        return step

    def get_completed_steps(self) -> List[SagaStep]:
        return self.steps[:self.current_step_index]

    def result_of(self, name: str) -> Any:
        for step in self.steps:
            if step.name == name:
                return step.result
        raise KeyError(name)

    async def run(self) -> "SagaExecution":
        self.started_at = datetime.now(timezone.utc)
        logger.info(f"Saga {self.name} started (saga_id={self.saga_id})")

        while self.current_step_index < len(self.steps):
            step = self.steps[self.current_step_index]
            step.status = StepStatus.IN_PROGRESS
            try:
                step.result = await step.action()
            except Exception as e:
                step.status = StepStatus.FAILED
                step.error = str(e)
                self.error = str(e)
                logger.error(f"Saga {self.name}: step '{step.name}' failed: {e}")

                if self.compensate:
                    await self._compensate()
                else:
                    logger.warning(
                        f"Saga {self.name}: compensation disabled, "
                        f"{len(self.get_completed_steps())} completed step(s) left in place"
                    )
                self.completed_at = datetime.now(timezone.utc)
                raise

            step.status = StepStatus.SUCCESS
            step.executed_at = datetime.now(timezone.utc)
            self.current_step_index += 1

        self.completed_at = datetime.now(timezone.utc)
        logger.info(f"Saga {self.name} completed (saga_id={self.saga_id})")
        return self

    async def _compensate(self):
        logger.warning(f"Starting compensation for saga {self.name} (saga_id={self.saga_id})")

        for step in reversed(self.get_completed_steps()):
            if step.compensation is None:
                continue
            try:
                await step.compensation()
            except Exception as e:
                # Keep going: the remaining steps still need undoing
                logger.error(
                    f"Compensation failed for '{step.name}' in saga {self.name}: {e}. "
                    f"Manual intervention may be required."
                )
                continue
            step.status = StepStatus.COMPENSATED
            step.compensated_at = datetime.now(timezone.utc)
            logger.info(f"Compensated '{step.name}' in saga {self.name}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "saga_id": self.saga_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error": self.error,
            "steps": [
                {"name": step.name, "status": step.status.value, "error": step.error}
                for step in self.steps
            ],
        }
