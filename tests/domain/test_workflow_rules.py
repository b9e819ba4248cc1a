"""
Workflow transition table tests.

Covers:
- Every row of the routing transition table
- Statuses that accept no routing at all (draft, resolved, archived)
- Consistency between resolve_transition() and allowed_actions()
- Cancellation eligibility
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from registry_kernel.domain.workflow import (
    CANCELLABLE_STATUSES,
    WORKFLOW_TRANSITIONS,
    DocumentStatus,
    WorkflowAction,
    allowed_actions,
    resolve_transition,
)

statuses = st.sampled_from(list(DocumentStatus))
actions = st.sampled_from(list(WorkflowAction))


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current, action, expected",
        [
            (DocumentStatus.REGISTERED, WorkflowAction.SENT, DocumentStatus.IN_WORK),
            (DocumentStatus.IN_WORK, WorkflowAction.SENT, DocumentStatus.IN_WORK),
            (DocumentStatus.IN_WORK, WorkflowAction.RECEIVED, DocumentStatus.IN_WORK),
            (DocumentStatus.IN_WORK, WorkflowAction.RETURNED, DocumentStatus.IN_WORK),
            (DocumentStatus.IN_WORK, WorkflowAction.APPROVED, DocumentStatus.RESOLVED),
            (DocumentStatus.IN_WORK, WorkflowAction.REJECTED, DocumentStatus.RESOLVED),
            (DocumentStatus.IN_WORK, WorkflowAction.RESOLVED, DocumentStatus.RESOLVED),
        ],
    )
    def test_legal_transitions(self, current, action, expected):
        assert resolve_transition(current, action) is expected

    def test_every_action_has_a_row(self):
        assert set(WORKFLOW_TRANSITIONS) == set(WorkflowAction)

    @pytest.mark.parametrize(
        "status",
        [DocumentStatus.DRAFT, DocumentStatus.RESOLVED, DocumentStatus.ARCHIVED],
    )
    def test_terminal_and_draft_statuses_accept_nothing(self, status):
        assert allowed_actions(status) == frozenset()
        for action in WorkflowAction:
            assert resolve_transition(status, action) is None

    def test_registered_only_accepts_sent(self):
        assert allowed_actions(DocumentStatus.REGISTERED) == {WorkflowAction.SENT}

    def test_in_work_accepts_everything(self):
        assert allowed_actions(DocumentStatus.IN_WORK) == set(WorkflowAction)


class TestTransitionProperties:
    @given(current=statuses, action=actions)
    def test_allowed_actions_agrees_with_resolve(self, current, action):
        legal = resolve_transition(current, action) is not None
        assert legal == (action in allowed_actions(current))

    @given(current=statuses, action=actions)
    def test_routing_never_reaches_draft_registered_or_archived(self, current, action):
        result = resolve_transition(current, action)
        assert result in (None, DocumentStatus.IN_WORK, DocumentStatus.RESOLVED)

    @given(path=st.lists(actions, max_size=20))
    def test_any_legal_path_from_registered_stays_in_routing_states(self, path):
        status = DocumentStatus.REGISTERED
        for action in path:
            nxt = resolve_transition(status, action)
            if nxt is None:
                continue
            status = nxt
        assert status in (
            DocumentStatus.REGISTERED,
            DocumentStatus.IN_WORK,
            DocumentStatus.RESOLVED,
        )


class TestCancellation:
    def test_archived_is_not_cancellable(self):
        assert DocumentStatus.ARCHIVED not in CANCELLABLE_STATUSES

    @pytest.mark.parametrize(
        "status",
        [
            DocumentStatus.DRAFT,
            DocumentStatus.REGISTERED,
            DocumentStatus.IN_WORK,
            DocumentStatus.RESOLVED,
        ],
    )
    def test_open_statuses_are_cancellable(self, status):
        assert status in CANCELLABLE_STATUSES
