"""
Spec-kit dialect: feature spec, implementation plan and task breakdown.
"""

from anvil.adapters.speckit.adapter import SpecKitAdapter
from anvil.adapters.speckit.plan_parser import ParsedPlan, PlanParser
from anvil.adapters.speckit.spec_parser import ParsedSpec, SpecParser
from anvil.adapters.speckit.tasks_parser import ParsedTasks, TasksParser, parse_task_line
from anvil.adapters.speckit.templates import render_plan, render_spec, render_tasks

__all__ = [
    "SpecKitAdapter",
    # Parsers
    "SpecParser",
    "PlanParser",
    "TasksParser",
    "parse_task_line",
    # Records
    "ParsedSpec",
    "ParsedPlan",
    "ParsedTasks",
    # Renderers
    "render_spec",
    "render_plan",
    "render_tasks",
]
