"""
Plan Store - File-based storage for APS plans.

One pretty-printed JSON file per plan, named after the plan id:

    plans/
      aps-1a2b3c4d.json
      aps-9f8e7d6c.json

Plans are validated (schema and hash) when read back. A stored plan is
immutable apart from its append-only logs: saving a plan with a different
hash, or with evidence that does not extend the stored evidence, is
refused.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from anvil.config import config
from anvil.engine.hashing import is_valid_plan_id
from anvil.engine.plans import append_evidence, append_execution
from anvil.engine.validator import assert_valid_plan
from anvil.models.plan import APSPlan, Evidence, Execution


logger = logging.getLogger(__name__)


class PlanStore:
    """File-based storage for APS plans."""

    def __init__(self, plans_dir: Optional[Path] = None):
        """
        Initialize the PlanStore.

        Args:
            plans_dir: Directory for plan files. Defaults to config.plans_dir.
        """
        self.plans_dir = Path(plans_dir) if plans_dir is not None else config.plans_dir
        self.plans_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, plan_id: str) -> Path:
        """
        File path of a plan.

        Raises:
            ValueError: If plan_id is not a valid plan id
        """
        if not is_valid_plan_id(plan_id):
            raise ValueError(f"Invalid plan id: {plan_id!r}")
        return self.plans_dir / f"{plan_id}.json"

    def save(self, plan: APSPlan) -> Path:
        """
        Save a plan.

        Args:
            plan: The plan to save

        Returns:
            The file path the plan was written to

        Raises:
            ValueError: If a stored plan with the same id has a different hash,
                or its evidence is not a prefix of the new evidence
        """
        existing = self.load(plan.id)
        if existing is not None:
            if existing.hash != plan.hash:
                raise ValueError(
                    f"Plan {plan.id} is already stored with hash {existing.hash}; refusing to overwrite"
                )
            _check_evidence_extends(existing, plan)
        return self._write(plan)

    def load(self, plan_id: str) -> Optional[APSPlan]:
        """
        Load a plan by id.

        Returns:
            The plan, or None if it is not stored

        Raises:
            SchemaValidationError: If the stored document is malformed
            HashValidationError: If the stored hash does not match the content
        """
        file_path = self.path_for(plan_id)
        if not file_path.exists():
            return None
        return self.load_file(file_path)

    @staticmethod
    def load_file(file_path: Union[str, Path]) -> APSPlan:
        """Read and validate a plan document from any path."""
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return assert_valid_plan(data)

    def list_plans(self) -> List[str]:
        """Ids of all stored plans, sorted."""
        return sorted(
            path.stem for path in self.plans_dir.glob("aps-*.json")
            if is_valid_plan_id(path.stem)
        )

    def exists(self, plan_id: str) -> bool:
        return self.path_for(plan_id).exists()

    def delete(self, plan_id: str) -> bool:
        """
        Delete a stored plan.

        Returns:
            True if something was deleted
        """
        file_path = self.path_for(plan_id)
        if not file_path.exists():
            return False
        file_path.unlink()
        logger.info("Deleted plan %s", plan_id)
        return True

    def append_evidence(self, plan_id: str, evidence: Union[Evidence, Mapping[str, Any]]) -> APSPlan:
        """
        Append an evidence record to a stored plan.

        Raises:
            KeyError: If the plan is not stored
        """
        plan = append_evidence(self._require(plan_id), evidence)
        self._write(plan)
        return plan

    def append_execution(self, plan_id: str, execution: Union[Execution, Mapping[str, Any]]) -> APSPlan:
        """
        Append an execution record to a stored plan; the plan hash is recomputed.

        Raises:
            KeyError: If the plan is not stored
        """
        plan = append_execution(self._require(plan_id), execution)
        self._write(plan)
        return plan

    def _require(self, plan_id: str) -> APSPlan:
        plan = self.load(plan_id)
        if plan is None:
            raise KeyError(f"Plan {plan_id} not found in {self.plans_dir}")
        return plan

    def _write(self, plan: APSPlan) -> Path:
        file_path = self.path_for(plan.id)
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(plan.to_document(), f, indent=2, ensure_ascii=False)
            f.write("\n")
        logger.debug("Saved plan %s to %s", plan.id, file_path)
        return file_path


def _check_evidence_extends(existing: APSPlan, plan: APSPlan) -> None:
    stored = _evidence_documents(existing)
    updated = _evidence_documents(plan)
    if updated[:len(stored)] != stored:
        raise ValueError(f"Evidence of plan {plan.id} must extend the stored evidence, not replace it")


def _evidence_documents(plan: APSPlan) -> List[Dict[str, Any]]:
    return [entry.model_dump(mode="json", exclude_none=True) for entry in plan.evidence or []]
