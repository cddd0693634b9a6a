"""
Library pinning and production stage planners.

Verifies:
- Pins are written once and never replaced
- The catalog pin defaults to a yearly tag
- Production stages are created in order, once
"""

from uuid import uuid4

import pytest

from boatyard_kernel.domain.milestones import (
    default_catalog_version_id,
    plan_library_pins,
    plan_production_stages,
)
from boatyard_kernel.domain.project import (
    DEFAULT_STAGE_DEFINITIONS,
    ProductionStageStatus,
    StageDefinition,
)
from boatyard_kernel.exceptions import LibraryPinsAlreadySetError
from tests.helpers import FIXED_TIME, make_project

ACTOR = uuid4()


class TestLibraryPins:
    def test_pins_capture_boat_model_and_versions(self):
        project = plan_library_pins(
            make_project(),
            {"quote": "tpl-quote-v4"},
            ["proc-hull-v2"],
            "catalog-2025",
            ACTOR,
            FIXED_TIME,
        )
        pins = project.library_pins
        assert pins.boat_model_version_id == "eagle-28-v3"
        assert pins.catalog_version_id == "catalog-2025"
        assert pins.template_version_ids == {"quote": "tpl-quote-v4"}
        assert pins.procedure_version_ids == ("proc-hull-v2",)
        assert pins.pinned_by == ACTOR

    def test_pins_are_write_once(self):
        project = plan_library_pins(make_project(), {}, [], "catalog-2025", ACTOR, FIXED_TIME)
        with pytest.raises(LibraryPinsAlreadySetError):
            plan_library_pins(project, {}, [], "catalog-2026", ACTOR, FIXED_TIME)

    def test_default_catalog_version_is_yearly(self):
        assert default_catalog_version_id("catalog", FIXED_TIME) == "catalog-2025"


class TestProductionStages:
    def test_default_stages_created_in_order(self):
        project = plan_production_stages(make_project(), DEFAULT_STAGE_DEFINITIONS, FIXED_TIME)
        stages = project.production_stages
        assert len(stages) == 9
        assert [s.code for s in stages][:2] == ["PREP", "HULL"]
        assert stages[-1].code == "FINAL"
        assert all(s.status is ProductionStageStatus.NOT_STARTED for s in stages)
        assert all(s.progress_percent == 0 for s in stages)
        assert all(s.project_id == project.id for s in stages)

    def test_definitions_sorted_by_order(self):
        definitions = (
            StageDefinition("B", "Second", 2, 1),
            StageDefinition("A", "First", 1, 1),
        )
        project = plan_production_stages(make_project(), definitions, FIXED_TIME)
        assert [s.code for s in project.production_stages] == ["A", "B"]

    def test_existing_stages_left_untouched(self):
        project = plan_production_stages(make_project(), DEFAULT_STAGE_DEFINITIONS, FIXED_TIME)
        assert plan_production_stages(project, DEFAULT_STAGE_DEFINITIONS, FIXED_TIME) is project
