"""Election workflow engine."""

from ballot.engine.workflow import WorkflowStateMachine

__all__ = ["WorkflowStateMachine"]
