"""Markdown renderers for BMAD documents."""

import yaml

from anvil.adapters.bmad.parsers import ParsedArchitecture, ParsedPrd, ParsedQA, ParsedStory, StoryTask, UserStory
from anvil.adapters.rendering import create_environment, finish_document


FIELDS_BLOCK = """\
{% if record.fields %}

{% for key, value in record.fields.items() %}
**{{ key | label }}**: {{ value | field_value }}
{% endfor %}
{% endif %}
"""

PRD_TEMPLATE = """\
# {{ (record.project ~ " ") if record.project else "" }}Product Requirements Document (PRD)
{% include "fields" %}

## Goals and Background Context

### Goals

{% for goal in record.goals %}
- {{ goal }}
{% endfor %}

### Background Context

{{ record.background }}

## Requirements

### Functional

{% for requirement in record.functional %}
- {{ requirement.code }}: {{ requirement.description }}
{% endfor %}

### Non Functional

{% for requirement in record.non_functional %}
- {{ requirement.code }}: {{ requirement.description }}
{% endfor %}
{% for epic in record.epics %}

## Epic {{ epic.number }}: {{ epic.title }}
{% if epic.goal %}

{{ epic.goal }}
{% endif %}
{% for story in epic.stories %}

### Story {{ story.epic }}.{{ story.number }}: {{ story.title }}
{% if story.user_story.present %}

{{ story.user_story | sentence }}
{% endif %}
{% if story.acceptance_criteria %}

#### Acceptance Criteria

{% for item in story.acceptance_criteria %}
{{ loop.index }}. {{ item }}
{% endfor %}
{% endif %}
{% endfor %}
{% endfor %}
"""

ARCHITECTURE_TEMPLATE = """\
# {{ (record.project ~ " ") if record.project else "" }}Architecture Document
{% include "fields" %}

## Introduction

{{ record.introduction }}

## High Level Architecture

{{ record.high_level }}
{% if record.tech_stack.columns %}

## Tech Stack

| {{ record.tech_stack.columns | join(" | ") }} |
|{% for column in record.tech_stack.columns %} --- |{% endfor %}

{% for row in record.tech_stack.rows %}
| {{ row | join(" | ") }} |
{% endfor %}
{% endif %}
{% if record.components %}

## Components
{% for component in record.components %}

### {{ component.name }}
{% if component.content %}

{{ component.content }}
{% elif component.responsibility is not none %}

**Responsibility**: {{ component.responsibility }}
{% endif %}
{% endfor %}
{% endif %}
{% if record.source_tree is not none %}

## Source Tree

```text
{{ record.source_tree }}
```
{% endif %}
"""

STORY_TEMPLATE = """\
{% if record.front_matter is not none %}
---
{{ front_matter }}---
{% elif record.front_matter_raw is not none %}
---
{{ record.front_matter_raw }}
---
{% endif %}
# Story {{ record.epic }}.{{ record.number }}: {{ record.title }}
{% include "fields" %}
{% if record.status is not none %}

## Status

{{ record.status }}
{% endif %}
{% if record.user_story.present %}

## Story

{{ record.user_story | story_lines }}
{% endif %}

## Acceptance Criteria

{% for item in record.acceptance_criteria %}
{{ loop.index }}. {{ item }}
{% endfor %}

## Tasks / Subtasks

{% for task in record.tasks %}
{{ task | task_line }}
{% for subtask in task.subtasks %}
  - {{ subtask.completed | checkbox }}{{ subtask.description }}
{% endfor %}
{% endfor %}
{% if record.dev_notes is not none %}

## Dev Notes

{{ record.dev_notes }}
{% endif %}
{% if record.qa_results is not none %}

## QA Results

{{ record.qa_results }}
{% endif %}
"""

QA_TEMPLATE = """\
# QA Results: {{ record.subject }}
{% include "fields" %}
{% if record.gate is not none and "gate" not in record.fields %}
**Gate**: {{ record.gate }}
{% endif %}

## Findings

{% for item in record.findings %}
- {{ item }}
{% endfor %}

## Recommendations

{% for item in record.recommendations %}
- {{ item }}
{% endfor %}
{% if record.checks %}

## Checks

{% for check in record.checks %}
- [{{ check.status }}] {{ check.name }}{% if check.message is not none %}: {{ check.message }}{% endif %}

{% endfor %}
{% endif %}
"""


def _article(noun: str) -> str:
    return "an" if noun[:1].lower() in "aeiou" else "a"


def user_story_sentence(story: UserStory) -> str:
    """``As a user, I want to log in, so that I see my data.``"""
    return f"As {_article(story.as_a)} {story.as_a}, I want {story.i_want}, so that {story.so_that}."


def user_story_lines(story: UserStory) -> str:
    return (
        f"**As {_article(story.as_a)}** {story.as_a},\n"
        f"**I want** {story.i_want},\n"
        f"**so that** {story.so_that}"
    )


def checkbox(completed) -> str:
    if completed is None:
        return ""
    return "[x] " if completed else "[ ] "


def render_story_task(task: StoryTask) -> str:
    line = f"- {checkbox(task.completed)}{task.description}"
    if task.acceptance_criteria:
        line += f" (AC: {', '.join(task.acceptance_criteria)})"
    return line


_env = create_environment({
    "fields": FIELDS_BLOCK,
    "prd.md": PRD_TEMPLATE,
    "architecture.md": ARCHITECTURE_TEMPLATE,
    "story.md": STORY_TEMPLATE,
    "qa.md": QA_TEMPLATE,
})
_env.filters["sentence"] = user_story_sentence
_env.filters["story_lines"] = user_story_lines
_env.filters["checkbox"] = checkbox
_env.filters["task_line"] = render_story_task


def render_prd(record: ParsedPrd) -> str:
    return finish_document(_env.get_template("prd.md").render(record=record))


def render_architecture(record: ParsedArchitecture) -> str:
    return finish_document(_env.get_template("architecture.md").render(record=record))


def render_story(record: ParsedStory) -> str:
    front_matter = ""
    if record.front_matter is not None:
        front_matter = yaml.safe_dump(record.front_matter, sort_keys=True, allow_unicode=True,
                                      default_flow_style=False)
    return finish_document(_env.get_template("story.md").render(record=record, front_matter=front_matter))


def render_qa(record: ParsedQA) -> str:
    return finish_document(_env.get_template("qa.md").render(record=record))
