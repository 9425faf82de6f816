"""
Markdown renderers for spec-kit documents.

Each renderer is the inverse of its parser: rendering a parsed record and
parsing the result again yields an equal record.
"""

from anvil.adapters.rendering import create_environment, finish_document
from anvil.adapters.speckit.plan_parser import LIST_FIELDS, SCALAR_FIELDS, ParsedPlan
from anvil.adapters.speckit.spec_parser import ParsedSpec
from anvil.adapters.speckit.tasks_parser import ParsedTasks, TaskItem


SPEC_TEMPLATE = """\
{% set criteria = spec.success_criteria %}
# Feature: {{ spec.feature }}
{% if spec.fields %}

{% for key, value in spec.fields.items() %}
**{{ key | label }}**: {{ value | field_value }}
{% endfor %}
{% endif %}

## User Scenarios & Testing
{% for scenario in spec.scenarios %}

### {{ scenario.priority }}: {{ scenario.title }}
{% if scenario.as_a or scenario.i_want_to or scenario.so_that %}

**As a** {{ scenario.as_a }}
**I want to** {{ scenario.i_want_to }}
**So that** {{ scenario.so_that }}
{% endif %}
{% if scenario.acceptance_scenarios %}

**Acceptance Scenarios:**

{% for item in scenario.acceptance_scenarios %}
{{ loop.index }}. {{ item }}
{% endfor %}
{% endif %}
{% if scenario.edge_cases %}

**Edge Cases:**

{% for item in scenario.edge_cases %}
- {{ item }}
{% endfor %}
{% endif %}
{% endfor %}
{% if spec.edge_cases %}

### Edge Cases

{% for item in spec.edge_cases %}
- {{ item }}
{% endfor %}
{% endif %}

## Requirements

### Functional Requirements

{% for requirement in spec.functional_requirements %}
- **{{ requirement.code }}**: {{ requirement.description }}
{% endfor %}
{% if spec.entities %}

### Key Entities
{% for entity in spec.entities %}

**{{ entity.name }}**
{% if entity.represents %}
- Represents: {{ entity.represents }}
{% endif %}
{% if entity.key_attributes %}
- Key Attributes: {{ entity.key_attributes | join(", ") }}
{% endif %}
{% if entity.relationships %}
- Relationships: {{ entity.relationships | join(", ") }}
{% endif %}
{% endfor %}
{% endif %}

## Success Criteria

### Quantitative Metrics

{% for item in criteria.quantitative %}
- {{ item }}
{% endfor %}

### Qualitative Metrics

{% for item in criteria.qualitative %}
- {{ item }}
{% endfor %}
{% if criteria.security is not none %}

### Security Metrics

{% for item in criteria.security %}
- {{ item }}
{% endfor %}
{% endif %}
{% if criteria.performance is not none %}

### Performance Metrics

{% for item in criteria.performance %}
- {{ item }}
{% endfor %}
{% endif %}
"""

PLAN_TEMPLATE = """\
{% set structure = plan.project_structure %}
# Implementation Plan: {{ plan.feature }}
{% if plan.fields %}

{% for key, value in plan.fields.items() %}
**{{ key | label }}**: {{ value | field_value }}
{% endfor %}
{% endif %}

## Summary

{{ plan.summary }}

## Technical Context

{% for label, value, is_list in context_fields %}
{% if is_list %}
- **{{ label }}**:
{% for item in value %}
  - {{ item }}
{% endfor %}
{% else %}
- **{{ label }}**: {{ value }}
{% endif %}
{% endfor %}
{% if plan.constitution_check %}

## Constitution Check

{% for check in plan.constitution_check %}
- {{ "✅" if check.passed else "❌" }} **{{ check.name }}**: {{ check.description }}
{% endfor %}
{% endif %}

## Project Structure
{% if structure.documentation is not none %}

### Documentation

```text
{{ structure.documentation }}
```
{% endif %}
{% if structure.source_code is not none or structure.selected_option is not none %}

### Source Code
{% if structure.selected_option is not none %}

#### Option 1: {{ structure.selected_option }} (Selected)
{% endif %}
{% if structure.source_code is not none %}

```text
{{ structure.source_code }}
```
{% endif %}
{% endif %}
{% if plan.implementation_details %}

## Implementation Details
{% for detail in plan.implementation_details %}

### {{ detail.title }}

{{ detail.content }}
{% endfor %}
{% endif %}
{% if plan.complexity_decisions %}

## Complexity Tracking
{% for decision in plan.complexity_decisions %}

### {{ decision.title }}

**Problem**: {{ decision.problem }}
**Solution**: {{ decision.solution }}
**Justification**: {{ decision.justification }}
{% endfor %}
{% endif %}
"""

TASKS_TEMPLATE = """\
# Tasks: {{ tasks.feature }}
{% if tasks.fields %}

{% for key, value in tasks.fields.items() %}
**{{ key | label }}**: {{ value | field_value }}
{% endfor %}
{% endif %}
{% for phase in tasks.phases %}

## Phase {{ phase.order }}: {{ phase.name }}
{% if phase.purpose is not none %}

**Purpose**: {{ phase.purpose }}
{% endif %}
{% if phase.tasks %}

{% for task in phase.tasks %}
{{ task | task_line }}
{% endfor %}
{% endif %}
{% if phase.checkpoint is not none %}

**Checkpoint**: {{ phase.checkpoint }}
{% endif %}
{% endfor %}
{% if tasks.dependencies %}

## Dependencies & Execution Order
{% for group in tasks.dependencies %}

### {{ group.title }}

{% for item in group.items %}
- {{ item }}
{% endfor %}
{% endfor %}
{% endif %}
{% if tasks.strategies %}

## Implementation Strategy
{% for strategy in tasks.strategies %}

### Strategy {{ loop.index }}: {{ strategy.name }}{{ " (Recommended)" if strategy.recommended else "" }}
{% if strategy.description %}

{{ strategy.description }}
{% endif %}
{% endfor %}
{% endif %}
"""


def render_task_line(task: TaskItem) -> str:
    """``- [ ] T001 [P] [US1] Description`` in the same shape the tasks parser reads."""
    parts = ["-"]
    if task.completed is not None:
        parts.append("[x]" if task.completed else "[ ]")
    parts.append(f"[{task.id}]" if task.id.isdigit() else task.id)
    if task.parallel:
        parts.append("[P]")
    if task.story:
        parts.append(f"[{task.story}]")
    if task.description:
        parts.append(task.description)
    return " ".join(parts)


_env = create_environment({
    "spec.md": SPEC_TEMPLATE,
    "plan.md": PLAN_TEMPLATE,
    "tasks.md": TASKS_TEMPLATE,
})
_env.filters["task_line"] = render_task_line


def render_spec(spec: ParsedSpec) -> str:
    return finish_document(_env.get_template("spec.md").render(spec=spec))


def render_plan(plan: ParsedPlan) -> str:
    context = plan.technical_context
    context_fields = []
    for attr in ("language", "dependencies", "storage", "testing", "target", "type",
                 "performance_goals", "constraints", "scale"):
        value = getattr(context, attr)
        if value is None:
            continue
        is_list = attr in LIST_FIELDS
        label = (LIST_FIELDS if is_list else SCALAR_FIELDS)[attr][0]
        context_fields.append((label, value, is_list))
    return finish_document(_env.get_template("plan.md").render(plan=plan, context_fields=context_fields))


def render_tasks(tasks: ParsedTasks) -> str:
    return finish_document(_env.get_template("tasks.md").render(tasks=tasks))
