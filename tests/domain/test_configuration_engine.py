"""
Configuration planning tests (pure domain).

Verifies:
- Item validation collects every message; non-finite numbers and bad cost
  prices are validation errors
- Updates recompute line totals and reject unknown fields
- Reorder / move renumber sort_order from 0
- Edit guards check the frozen flag and the status independently
- Snapshot capture hashes the frozen data; tampering is detected
- plan_freeze numbers snapshots and refuses a second non-amendment freeze
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from boatyard_kernel.domain.configuration import (
    ConfigurationState,
    MoveDirection,
    SnapshotTrigger,
    apply_item_updates,
    build_item,
    can_change_boat_model,
    capture_snapshot,
    check_editable,
    move,
    plan_freeze,
    reorder,
    reprice,
    validate_configuration_update,
    validate_discount,
    validate_item_values,
    verify_snapshot,
)
from boatyard_kernel.domain.status_machine import ProjectStatus
from boatyard_kernel.exceptions import (
    AlreadyFrozenError,
    BoatModelPinnedError,
    ConfigFrozenError,
    ItemNotFoundError,
    StatusNotEditableError,
    ValidationFailedError,
)
from tests.helpers import FIXED_TIME, item, make_project

ACTOR = uuid4()


class TestItemValidation:
    def test_valid_values_yield_no_errors(self):
        assert validate_item_values("Mast", "Rigging", "1", "250") == []

    def test_all_errors_are_collected(self):
        errors = validate_item_values("", " ", "0", "-1")
        assert errors == [
            "Item name is required",
            "Item category is required",
            "Quantity must be greater than 0",
            "Unit price cannot be negative",
        ]

    def test_non_numeric_values(self):
        errors = validate_item_values("Mast", "Rigging", "two", "abc")
        assert "Quantity must be a number" in errors
        assert "Unit price must be a number" in errors

    @pytest.mark.parametrize("value", ["Infinity", "-Infinity", "NaN", "sNaN"])
    def test_non_finite_values(self, value):
        errors = validate_item_values("Mast", "Rigging", value, value)
        assert errors == ["Quantity must be a number", "Unit price must be a number"]

    def test_cost_price_checked(self):
        assert validate_item_values("Mast", "Rigging", "1", "250", cost_price="180") == []
        assert validate_item_values("Mast", "Rigging", "1", "250", cost_price="abc") == [
            "Cost price must be a number"
        ]
        assert validate_item_values("Mast", "Rigging", "1", "250", cost_price="-1") == [
            "Cost price cannot be negative"
        ]

    def test_build_item_computes_line_total(self):
        built = build_item(item(unit_price="1250.555", quantity="2"), sort_order=3)
        assert built.line_total_excl_vat == Decimal("2501.11")
        assert built.sort_order == 3
        assert built.is_included

    def test_build_item_strips_names(self):
        built = build_item(item(name="  Bow thruster ", category=" Deck "), sort_order=0)
        assert built.name == "Bow thruster"
        assert built.category == "Deck"

    def test_build_item_rejects_invalid(self):
        with pytest.raises(ValidationFailedError) as exc_info:
            build_item(item(quantity="0"), sort_order=0)
        assert exc_info.value.errors == ["Quantity must be greater than 0"]


class TestItemUpdates:
    def test_quantity_update_reprices_line(self):
        original = build_item(item(unit_price="100", quantity="1"), sort_order=0)
        updated = apply_item_updates(original, {"quantity": "3"})
        assert updated.quantity == Decimal("3")
        assert updated.line_total_excl_vat == Decimal("300.00")
        assert updated.id == original.id

    def test_unknown_field_rejected(self):
        original = build_item(item(), sort_order=0)
        with pytest.raises(ValidationFailedError) as exc_info:
            apply_item_updates(original, {"id": uuid4(), "sort_order": 9})
        assert exc_info.value.errors == [
            "Field cannot be updated: id",
            "Field cannot be updated: sort_order",
        ]

    def test_invalid_resulting_value_rejected(self):
        original = build_item(item(), sort_order=0)
        with pytest.raises(ValidationFailedError):
            apply_item_updates(original, {"unit_price_excl_vat": "-5"})

    @pytest.mark.parametrize(
        "updates",
        [{"cost_price": "abc"}, {"quantity": "Infinity"}, {"unit_price_excl_vat": "NaN"}],
    )
    def test_malformed_numbers_rejected(self, updates):
        original = build_item(item(), sort_order=0)
        with pytest.raises(ValidationFailedError):
            apply_item_updates(original, updates)

    def test_exclusion_flag_update(self):
        original = build_item(item(), sort_order=0)
        assert apply_item_updates(original, {"is_included": False}).is_included is False


class TestOrdering:
    def _items(self):
        return tuple(
            build_item(item(name=name), sort_order=i)
            for i, name in enumerate(("Hull", "Mast", "Sails"))
        )

    def test_reorder_renumbers_from_zero(self):
        hull, mast, sails = self._items()
        result = reorder((hull, mast, sails), [sails.id, hull.id, mast.id])
        assert [i.name for i in result] == ["Sails", "Hull", "Mast"]
        assert [i.sort_order for i in result] == [0, 1, 2]

    def test_reorder_appends_unlisted_and_ignores_unknown(self):
        hull, mast, sails = self._items()
        result = reorder((hull, mast, sails), [uuid4(), mast.id])
        assert [i.name for i in result] == ["Mast", "Hull", "Sails"]

    def test_move_up_swaps_with_neighbour(self):
        items = self._items()
        result = move(items, uuid4(), items[1].id, MoveDirection.UP)
        assert [i.name for i in result] == ["Mast", "Hull", "Sails"]

    def test_move_past_edge_is_no_change(self):
        items = self._items()
        assert move(items, uuid4(), items[0].id, "up") is None
        assert move(items, uuid4(), items[2].id, "down") is None

    def test_move_unknown_item(self):
        with pytest.raises(ItemNotFoundError):
            move(self._items(), uuid4(), uuid4(), "down")


class TestRepriceAndDiscount:
    def test_reprice_recomputes_aggregates(self):
        project = make_project(items=[item(unit_price="10000")])
        configuration = replace(project.configuration, discount_percent=Decimal("10"))
        repriced = reprice(configuration)
        assert repriced.subtotal_excl_vat == Decimal("10000.00")
        assert repriced.discount_amount == Decimal("1000.00")
        assert repriced.vat_amount == Decimal("1890.00")
        assert repriced.total_incl_vat == Decimal("10890.00")

    @pytest.mark.parametrize("value", ["-1", "100.01", "ten", "NaN", "Infinity"])
    def test_invalid_discount(self, value):
        with pytest.raises(ValidationFailedError):
            validate_discount(value)

    def test_discount_bounds_inclusive(self):
        assert validate_discount("0") == Decimal("0")
        assert validate_discount("100") == Decimal("100")


class TestEditGuards:
    def test_draft_is_editable(self):
        check_editable(make_project())

    def test_frozen_flag_blocks_even_in_editable_status(self):
        project = make_project()
        frozen = replace(project, configuration=replace(project.configuration, is_frozen=True))
        with pytest.raises(ConfigFrozenError):
            check_editable(frozen)

    def test_unfrozen_configuration_in_frozen_status_is_blocked(self):
        project = make_project(status=ProjectStatus.IN_PRODUCTION)
        with pytest.raises(StatusNotEditableError) as exc_info:
            check_editable(project)
        assert str(exc_info.value) == "Cannot edit configuration in IN_PRODUCTION status"

    def test_boat_model_pinned_from_creation(self):
        allowed, reason = can_change_boat_model(make_project())
        assert not allowed
        assert "Amendment" in reason

    def test_boat_model_free_when_unset(self):
        assert can_change_boat_model(make_project(boat_model_version_id=None)) == (True, None)

    def test_changing_pinned_model_rejected(self):
        project = make_project()
        with pytest.raises(BoatModelPinnedError):
            validate_configuration_update(
                project.id, project.configuration, {"boat_model_version_id": "eagle-32-v1"}
            )

    def test_same_model_value_allowed(self):
        project = make_project()
        validate_configuration_update(
            project.id, project.configuration, {"boat_model_version_id": "eagle-28-v3"}
        )


class TestSnapshots:
    def test_snapshot_data_is_frozen_and_hashed(self):
        project = make_project(items=[item()])
        snapshot = capture_snapshot(
            project.id, project.configuration, 1, SnapshotTrigger.MANUAL, ACTOR, FIXED_TIME
        )
        assert snapshot.data.is_frozen
        assert not project.configuration.is_frozen
        assert len(snapshot.content_hash) == 64
        assert verify_snapshot(snapshot)

    def test_tampered_data_fails_verification(self):
        project = make_project(items=[item()])
        snapshot = capture_snapshot(
            project.id, project.configuration, 1, SnapshotTrigger.MANUAL, ACTOR, FIXED_TIME
        )
        tampered = replace(
            snapshot, data=replace(snapshot.data, total_incl_vat=Decimal("1.00"))
        )
        assert not verify_snapshot(tampered)

    def test_payload_roundtrip(self):
        project = make_project(items=[item(), item(name="Mast", unit_price="99.99")])
        data = project.configuration
        assert ConfigurationState.from_payload(data.to_payload()) == data


class TestPlanFreeze:
    def test_freeze_appends_numbered_snapshot(self):
        project = make_project(items=[item()])
        plan = plan_freeze(
            project, SnapshotTrigger.ORDER_CONFIRMED, ACTOR, FIXED_TIME, "Order confirmed"
        )
        assert plan.project.configuration.is_frozen
        assert plan.project.configuration.frozen_at == FIXED_TIME
        assert plan.project.configuration.frozen_by == ACTOR
        assert plan.snapshot.snapshot_number == 1
        assert plan.snapshot.trigger_reason == "Order confirmed"
        assert plan.project.configuration_snapshots == (plan.snapshot,)

    def test_second_freeze_rejected(self):
        project = make_project(items=[item()])
        frozen = plan_freeze(project, SnapshotTrigger.MANUAL, ACTOR, FIXED_TIME).project
        with pytest.raises(AlreadyFrozenError):
            plan_freeze(frozen, SnapshotTrigger.ORDER_CONFIRMED, ACTOR, FIXED_TIME)

    def test_amendment_trigger_allowed_when_frozen(self):
        project = make_project(items=[item()])
        frozen = plan_freeze(project, SnapshotTrigger.MANUAL, ACTOR, FIXED_TIME).project
        again = plan_freeze(frozen, SnapshotTrigger.AMENDMENT, ACTOR, FIXED_TIME)
        assert again.snapshot.snapshot_number == 2
