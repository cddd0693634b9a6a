"""
Bill of materials tests.

Verifies:
- Estimated cost = round(sell price * ratio) in whole units
- Actual cost price wins over estimation when positive
- Excluded items are skipped; article lines aggregate by article version
- BOM lines sort by category then name; totals reconcile
- First BOM is BASELINE, later ones REVISED
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

from boatyard_kernel.domain.bom import (
    DEFAULT_COST_ESTIMATION_RATIO,
    BOMStatus,
    build_bom_snapshot,
    expand_to_bom_items,
)
from boatyard_kernel.domain.configuration import (
    ConfigurationItemType,
    SnapshotTrigger,
    build_item,
    plan_freeze,
)
from tests.helpers import FIXED_TIME, item, make_project

ACTOR = uuid4()


def _built(*new_items):
    return tuple(build_item(n, sort_order=i) for i, n in enumerate(new_items))


class TestExpansion:
    def test_estimated_cost_rounds_to_whole_units(self):
        (line,) = expand_to_bom_items(_built(item(unit_price="8249.17")), Decimal("0.6"))
        assert line.unit_cost == Decimal("4950")
        assert line.total_cost == Decimal("4950.00")
        assert line.is_estimated
        assert line.estimation_ratio == Decimal("0.6")
        assert line.sell_price == Decimal("8249.17")

    def test_actual_cost_price_used_when_positive(self):
        (line,) = expand_to_bom_items(
            _built(item(unit_price="1000", quantity="2", cost_price=Decimal("412.345"))),
            DEFAULT_COST_ESTIMATION_RATIO,
        )
        assert not line.is_estimated
        assert line.unit_cost == Decimal("412.35")
        assert line.total_cost == Decimal("824.70")
        assert line.estimation_ratio is None

    def test_zero_cost_price_falls_back_to_estimate(self):
        (line,) = expand_to_bom_items(
            _built(item(unit_price="100", cost_price=Decimal("0"))), Decimal("0.5")
        )
        assert line.is_estimated
        assert line.unit_cost == Decimal("50")

    def test_excluded_items_skipped(self):
        hull, mast = _built(item(name="Hull"), item(name="Mast"))
        lines = expand_to_bom_items((hull, replace(mast, is_included=False)), Decimal("0.6"))
        assert [line.name for line in lines] == ["Hull"]

    def test_article_lines_aggregate_by_version(self):
        article = dict(item_type=ConfigurationItemType.ARTICLE, article_version_id="av-1")
        lines = expand_to_bom_items(
            _built(
                item(name="Cleat", unit_price="50", quantity="4", category="Deck", **article),
                item(name="Cleat", unit_price="50", quantity="2", category="Deck", **article),
            ),
            Decimal("0.6"),
        )
        assert len(lines) == 1
        assert lines[0].quantity == Decimal("6")
        assert lines[0].total_cost == Decimal("180.00")

    def test_custom_lines_never_aggregate(self):
        lines = expand_to_bom_items(
            _built(item(name="Cushion"), item(name="Cushion")), Decimal("0.6")
        )
        assert len(lines) == 2

    def test_sorted_by_category_then_name(self):
        lines = expand_to_bom_items(
            _built(
                item(name="Winch", category="Deck"),
                item(name="Battery", category="Electrical"),
                item(name="Anchor", category="Deck"),
            ),
            Decimal("0.6"),
        )
        assert [(line.category, line.name) for line in lines] == [
            ("Deck", "Anchor"),
            ("Deck", "Winch"),
            ("Electrical", "Battery"),
        ]


class TestBomSnapshot:
    def _frozen(self):
        project = make_project(
            items=[
                item(name="Hull", unit_price="10000"),
                item(name="Motor", unit_price="5000", cost_price=Decimal("3200")),
            ]
        )
        return plan_freeze(project, SnapshotTrigger.ORDER_CONFIRMED, ACTOR, FIXED_TIME)

    def test_totals_reconcile(self):
        plan = self._frozen()
        bom = build_bom_snapshot(
            plan.project, plan.snapshot, SnapshotTrigger.ORDER_CONFIRMED,
            Decimal("0.6"), ACTOR, FIXED_TIME,
        )
        assert bom.total_cost_excl_vat == Decimal("9200.00")
        assert bom.estimated_cost_total == Decimal("6000.00")
        assert bom.actual_cost_total == Decimal("3200.00")
        assert bom.estimated_cost_count == 1
        assert bom.total_parts == Decimal("2")
        assert bom.configuration_snapshot_id == plan.snapshot.id

    def test_first_is_baseline_then_revised(self):
        plan = self._frozen()
        first = build_bom_snapshot(
            plan.project, plan.snapshot, SnapshotTrigger.ORDER_CONFIRMED,
            Decimal("0.6"), ACTOR, FIXED_TIME,
        )
        assert first.status is BOMStatus.BASELINE
        assert first.snapshot_number == 1

        with_bom = replace(plan.project, bom_snapshots=(first,))
        second = build_bom_snapshot(
            with_bom, plan.snapshot, SnapshotTrigger.AMENDMENT,
            Decimal("0.6"), ACTOR, FIXED_TIME,
        )
        assert second.status is BOMStatus.REVISED
        assert second.snapshot_number == 2

    def test_empty_configuration_yields_empty_bom(self):
        project = make_project()
        plan = plan_freeze(project, SnapshotTrigger.ORDER_CONFIRMED, ACTOR, FIXED_TIME)
        bom = build_bom_snapshot(
            plan.project, plan.snapshot, SnapshotTrigger.ORDER_CONFIRMED,
            Decimal("0.6"), ACTOR, FIXED_TIME,
        )
        assert bom.items == ()
        assert bom.total_cost_excl_vat == Decimal("0.00")
