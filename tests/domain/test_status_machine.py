"""
Status machine tests.

Verifies:
- The transition table is closed over the status set; CLOSED is terminal
- Capability partitions (editable / frozen / locked) are consistent
- validate_transition messages, warnings and confirmation flags
- Milestone effects come back in declaration order
"""

import pytest

from boatyard_kernel.domain.status_machine import (
    STATUS_CAPABILITIES,
    VALID_TRANSITIONS,
    MilestoneEffectType,
    ProjectStatus,
    StatusCapability,
    TransitionContext,
    can_archive,
    can_transition,
    get_milestone_effects,
    get_status_info,
    get_valid_next_statuses,
    is_editable,
    is_frozen,
    is_locked,
    is_milestone,
    validate_transition,
)

ALL_STATUSES = tuple(ProjectStatus)


class TestTransitionTable:
    """The table is the only source of legal edges."""

    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(ALL_STATUSES)

    def test_targets_are_known_statuses(self):
        for targets in VALID_TRANSITIONS.values():
            assert set(targets) <= set(ALL_STATUSES)

    def test_closed_is_terminal(self):
        assert get_valid_next_statuses(ProjectStatus.CLOSED) == ()
        for status in ALL_STATUSES:
            assert not can_transition(ProjectStatus.CLOSED, status)

    @pytest.mark.parametrize("from_status", ALL_STATUSES)
    @pytest.mark.parametrize("to_status", ALL_STATUSES)
    def test_can_transition_matches_table(self, from_status, to_status):
        expected = to_status in VALID_TRANSITIONS[from_status]
        assert can_transition(from_status, to_status) is expected

    def test_no_self_transitions(self):
        for status in ALL_STATUSES:
            assert not can_transition(status, status)

    def test_backward_edges(self):
        assert can_transition(ProjectStatus.QUOTED, ProjectStatus.DRAFT)
        assert can_transition(ProjectStatus.OFFER_SENT, ProjectStatus.QUOTED)
        assert can_transition(ProjectStatus.READY_FOR_DELIVERY, ProjectStatus.IN_PRODUCTION)

    def test_no_skipping_to_order_confirmed(self):
        assert not can_transition(ProjectStatus.DRAFT, ProjectStatus.ORDER_CONFIRMED)
        assert not can_transition(ProjectStatus.OFFER_SENT, ProjectStatus.IN_PRODUCTION)

    def test_unknown_status_is_never_legal(self):
        assert not can_transition("DRAFT", "SHIPPED")
        assert not can_transition("SHIPPED", "DRAFT")

    def test_every_status_reachable_from_draft(self):
        seen = {ProjectStatus.DRAFT}
        frontier = [ProjectStatus.DRAFT]
        while frontier:
            current = frontier.pop()
            for nxt in VALID_TRANSITIONS[current]:
                if nxt not in seen:
                    seen.add(nxt)
                    frontier.append(nxt)
        assert seen == set(ALL_STATUSES)


class TestCapabilities:
    def test_editable_statuses(self):
        editable = {s for s in ALL_STATUSES if is_editable(s)}
        assert editable == {
            ProjectStatus.DRAFT,
            ProjectStatus.QUOTED,
            ProjectStatus.OFFER_SENT,
        }

    def test_frozen_statuses(self):
        frozen = {s for s in ALL_STATUSES if is_frozen(s)}
        assert frozen == {
            ProjectStatus.ORDER_CONFIRMED,
            ProjectStatus.IN_PRODUCTION,
            ProjectStatus.READY_FOR_DELIVERY,
            ProjectStatus.DELIVERED,
            ProjectStatus.CLOSED,
        }

    def test_locked_statuses(self):
        locked = {s for s in ALL_STATUSES if is_locked(s)}
        assert locked == {ProjectStatus.DELIVERED, ProjectStatus.CLOSED}

    @pytest.mark.parametrize("status", ALL_STATUSES)
    def test_editable_and_frozen_partition_statuses(self, status):
        assert is_editable(status) != is_frozen(status)

    @pytest.mark.parametrize("status", ALL_STATUSES)
    def test_locked_implies_frozen(self, status):
        if is_locked(status):
            assert is_frozen(status)

    @pytest.mark.parametrize("status", ALL_STATUSES)
    def test_amendable_is_frozen_and_not_locked(self, status):
        amendable = StatusCapability.AMEND_CONFIGURATION in STATUS_CAPABILITIES[status]
        assert amendable == (is_frozen(status) and not is_locked(status))

    def test_archive_only_from_draft_or_closed(self):
        assert {s for s in ALL_STATUSES if can_archive(s)} == {
            ProjectStatus.DRAFT,
            ProjectStatus.CLOSED,
        }


class TestValidateTransition:
    def test_illegal_edge_yields_single_error(self):
        validation = validate_transition(
            ProjectStatus.DRAFT, ProjectStatus.ORDER_CONFIRMED, TransitionContext()
        )
        assert not validation.is_valid
        assert validation.errors == ("Cannot transition from DRAFT to ORDER_CONFIRMED",)
        assert validation.warnings == ()
        assert validation.milestone_effects == ()

    def test_quote_draft_required_for_quoted(self):
        validation = validate_transition(ProjectStatus.DRAFT, ProjectStatus.QUOTED)
        assert validation.errors == ("A quote draft is required before marking as Quoted",)

    def test_quote_sent_required_for_offer_sent(self):
        validation = validate_transition(ProjectStatus.QUOTED, ProjectStatus.OFFER_SENT)
        assert validation.errors == ("Quote must be marked as sent before proceeding",)

    def test_accepted_quote_required_for_order_confirmed(self):
        validation = validate_transition(
            ProjectStatus.OFFER_SENT,
            ProjectStatus.ORDER_CONFIRMED,
            TransitionContext(configuration_item_count=3),
        )
        assert validation.errors == (
            "Quote must be accepted by client before confirming order",
        )

    def test_empty_configuration_warns_on_order_confirmed(self):
        validation = validate_transition(
            ProjectStatus.OFFER_SENT,
            ProjectStatus.ORDER_CONFIRMED,
            TransitionContext(has_quote_accepted=True, configuration_item_count=0),
        )
        assert validation.is_valid
        assert "Configuration has no items - BOM will be empty" in validation.warnings
        assert validation.requires_confirmation

    def test_incomplete_checklist_is_warning_not_error(self):
        validation = validate_transition(
            ProjectStatus.READY_FOR_DELIVERY, ProjectStatus.DELIVERED, TransitionContext()
        )
        assert validation.is_valid
        assert validation.warnings == ("Delivery checklist is not complete",)
        assert validation.requires_confirmation

    def test_plain_transition_needs_no_confirmation(self):
        validation = validate_transition(ProjectStatus.QUOTED, ProjectStatus.DRAFT)
        assert validation.is_valid
        assert not validation.requires_confirmation

    def test_milestone_transition_requires_confirmation(self):
        validation = validate_transition(
            ProjectStatus.ORDER_CONFIRMED, ProjectStatus.IN_PRODUCTION
        )
        assert validation.requires_confirmation
        assert [e.effect_type for e in validation.milestone_effects] == [
            MilestoneEffectType.INITIALIZE_PRODUCTION
        ]


class TestMilestoneEffects:
    def test_order_confirmed_effects_in_order(self):
        effects = get_milestone_effects(ProjectStatus.ORDER_CONFIRMED)
        assert [e.effect_type for e in effects] == [
            MilestoneEffectType.FREEZE_CONFIGURATION,
            MilestoneEffectType.GENERATE_BOM,
            MilestoneEffectType.PIN_LIBRARY_VERSIONS,
        ]

    def test_offer_sent_locks_quote(self):
        effects = get_milestone_effects(ProjectStatus.OFFER_SENT)
        assert [e.effect_type for e in effects] == [MilestoneEffectType.LOCK_QUOTE]

    def test_delivered_finalizes_documents(self):
        effects = get_milestone_effects(ProjectStatus.DELIVERED)
        assert [e.effect_type for e in effects] == [MilestoneEffectType.FINALIZE_DOCUMENTS]

    def test_non_milestones_have_no_effects(self):
        for status in (ProjectStatus.DRAFT, ProjectStatus.QUOTED, ProjectStatus.CLOSED):
            assert not is_milestone(status)
            assert get_milestone_effects(status) == ()


class TestStatusInfo:
    @pytest.mark.parametrize("status", ALL_STATUSES)
    def test_every_status_has_info(self, status):
        info = get_status_info(status)
        assert info.label
        assert info.description

    def test_order_confirmed_label(self):
        assert get_status_info(ProjectStatus.ORDER_CONFIRMED).label == "Order Confirmed"
