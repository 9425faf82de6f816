"""Sample documents shared by the test suite."""

from datetime import datetime, timezone


FIXED_NOW = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
FIXED_TIMESTAMP = "2025-01-02T03:04:05.000Z"
FIXED_PLAN_ID = "aps-0000abcd"


SPEC_MD = """\
# Feature: Authentication

**Feature Branch**: `001-auth`
**Status**: Draft

## User Scenarios & Testing

### P1: User Login

**As a** registered user
**I want to** log in with my email and password
**So that** I can access my account

**Acceptance Scenarios:**

1. Given valid credentials, When the user submits the form, Then a session is created
2. Given an invalid password, When the user submits the form, Then an error is shown

## Requirements

### Functional Requirements

- **FR-001**: System MUST hash passwords [NEEDS CLARIFICATION: which hashing algorithm?]

### Key Entities

**User**
- Represents: A registered account holder
- Key Attributes: email, password_hash
- Relationships: has many Sessions

## Success Criteria

### Quantitative Metrics

- Login completes in under 2 seconds

### Qualitative Metrics

- Users understand login errors
"""

PLAN_MD = """\
# Implementation Plan: Authentication

**Branch**: `001-auth` | **Date**: 2025-01-02

## Summary

Add email and password login backed by a session store.

## Technical Context

**Language/Version**: Python 3.11
**Primary Dependencies**: fastapi, sqlalchemy, bcrypt
**Storage**: PostgreSQL
**Testing**: pytest

## Constitution Check

- ✅ **Simplicity**: One service
- ❌ **Observability**: Tracing not planned

## Project Structure

### Source Code

#### Option 1: Single project (Selected)

```text
src/
├── modules/
└── lib/
```

## Implementation Details

### Database Schema

Users and sessions tables.

### API Endpoints

POST /login and POST /logout.
"""

TASKS_MD = """\
# Tasks: Authentication

## Phase 1: Setup

**Purpose**: Project initialization

- [ ] T001 Create project structure in `src/auth/`
- [ ] T002 [P] Install dependencies for bcrypt package

**Checkpoint**: Project builds

## Phase 2: User Login

- [x] T003 [P] [US1] Create User model in src/models/user.py
- [ ] T004 [US1] Update `src/app.py` to register login routes

## Dependencies & Execution Order

### Sequential

- Phase 1 before Phase 2

### Parallel Opportunities

- T002 and T003 can run together

## Implementation Strategy

### Strategy 1: MVP First (Recommended)

Ship login before anything else.

### Strategy 2: Incremental

Add one story at a time.
"""

PRD_MD = """\
# Task Tracker Product Requirements Document (PRD)

## Goals and Background Context

### Goals

- Let teams track tasks in one place
- Reduce status meetings

### Background Context

Teams juggle spreadsheets today.

## Requirements

### Functional

- FR1: Users can create tasks
- FR2: Users can assign tasks [NEEDS CLARIFICATION: can tasks have several assignees?]

### Non Functional

- NFR1: Pages load in under 1 second

## Epic 1: Foundation

Set up the project and core task model.

### Story 1.1: Create Task

As a team member,
I want to create a task,
so that work is visible.

#### Acceptance Criteria

1. A task has a title
2. A task has a status
"""

ARCHITECTURE_MD = """\
# Task Tracker Architecture Document

## Introduction

This document describes the Task Tracker backend architecture.

## High Level Architecture

A single service backed by PostgreSQL.

## Tech Stack

| Category | Technology | Version | Purpose |
| --- | --- | --- | --- |
| Language | Python | 3.11 | Backend language |
| Database | PostgreSQL | 15 | Primary store |

## Components

### TaskService

**Responsibility**: Task lifecycle

## Source Tree

```text
src/
└── tasks/
```
"""

STORY_MD = """\
---
status: Draft
epic: 1
---
# Story 1.1: Create Task

## Status

Draft

## Story

**As a** team member,
**I want** to create a task,
**so that** work is visible.

## Acceptance Criteria

1. A task has a title
2. A task has a status

## Tasks / Subtasks

- [ ] Create the task model in `src/models/task.py` (AC: 1, 2)
  - [ ] Add title field
  - [x] Add status field
- [ ] Update `src/api/tasks.py` to expose creation (AC: 1)

## Dev Notes

Use the existing repository layer.
"""

QA_MD = """\
# QA Results: Story 1.1

**Gate**: PASS
**Reviewer**: Quinn

## Findings

- Validation covers empty titles

## Recommendations

- Add a test for long titles

## Checks

- [PASS] unit tests: 12 passed
- [WARN] coverage: 78%
"""
