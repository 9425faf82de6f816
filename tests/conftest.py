import pytest

from anvil.adapters.bmad import BmadAdapter
from anvil.adapters.registry import AdapterRegistry
from anvil.adapters.speckit import SpecKitAdapter
from anvil.engine.hashing import compute_plan_hash
from anvil.engine.plans import create_plan

from tests.samples import (
    ARCHITECTURE_MD,
    FIXED_NOW,
    FIXED_PLAN_ID,
    FIXED_TIMESTAMP,
    PLAN_MD,
    PRD_MD,
    QA_MD,
    SPEC_MD,
    STORY_MD,
    TASKS_MD,
)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def id_generator():
    return lambda: FIXED_PLAN_ID


@pytest.fixture
def speckit_adapter(fixed_clock, id_generator):
    return SpecKitAdapter(id_generator=id_generator, clock=fixed_clock)


@pytest.fixture
def bmad_adapter(fixed_clock, id_generator):
    return BmadAdapter(id_generator=id_generator, clock=fixed_clock)


@pytest.fixture
def registry(speckit_adapter, bmad_adapter):
    registry = AdapterRegistry()
    registry.register(speckit_adapter)
    registry.register(bmad_adapter)
    return registry


@pytest.fixture
def minimal_document():
    """A valid plan document with its hash set."""
    document = {
        "id": "aps-a1b2c3d4",
        "intent": "Add rate limiting to the public HTTP API",
        "schema_version": "0.1.0",
        "proposed_changes": [],
        "provenance": {"timestamp": FIXED_TIMESTAMP, "source": "cli", "version": "0.1.0"},
        "validations": {"required_checks": ["lint", "test"]},
    }
    document["hash"] = compute_plan_hash(document)
    return document


@pytest.fixture
def sample_plan(fixed_clock):
    return create_plan(
        "Add rate limiting to the public HTTP API",
        changes=[
            {"type": "file_create", "path": "src/limits.py", "description": "Create the limiter"},
            {"type": "config_update", "path": "config/limits.yaml", "description": "Configure quotas"},
        ],
        plan_id="aps-a1b2c3d4",
        author="dev",
        clock=fixed_clock,
    )


@pytest.fixture
def spec_md():
    return SPEC_MD


@pytest.fixture
def plan_md():
    return PLAN_MD


@pytest.fixture
def tasks_md():
    return TASKS_MD


@pytest.fixture
def prd_md():
    return PRD_MD


@pytest.fixture
def architecture_md():
    return ARCHITECTURE_MD


@pytest.fixture
def story_md():
    return STORY_MD


@pytest.fixture
def qa_md():
    return QA_MD
