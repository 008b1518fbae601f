"""BDD tests for the telemetry pipeline."""

import pytest
from pytest_bdd import scenarios

scenarios("pipeline.feature")

pytestmark = [pytest.mark.integration, pytest.mark.tier(2)]
