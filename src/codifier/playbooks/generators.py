"""Prompt builders for ``generate`` steps.

The server never calls a language model itself. When a playbook reaches a
``generate`` step, the matching builder turns the session's collected data
into a prompt which the client runs through its own model, then feeds the
output back as ``<generator>_output`` on the next ``advance_step``.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

GeneratorFn = Callable[[dict[str, Any]], str]

NOT_PROVIDED = "(not provided)"


def _json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def _first(context: dict[str, Any], *keys: str, default: Any = NOT_PROVIDED) -> Any:
    for key in keys:
        if context.get(key) is not None:
            return context[key]
    return default


def rules_from_context(context: dict[str, Any]) -> str:
    return f"""You are a senior software architect. Based on the project context below, generate a \
comprehensive set of development rules and coding standards for this project.

## Project Context

Project Name: {_first(context, "project_name")}
Description: {_first(context, "description")}
Scope of Work: {_first(context, "sow")}
Repositories: {_json(_first(context, "repo_urls", "repos", default=[]))}
Additional Context: {_json(_first(context, "additional_context", "context", default={}))}

## Instructions

Generate rules covering ALL of the following areas:
1. **Code Style**: naming conventions, file organisation, formatting
2. **Architecture Patterns**: module structure, dependency direction, layering
3. **Security**: input validation, secrets management, authentication patterns
4. **Testing**: unit test structure, coverage targets, mocking strategy
5. **Documentation**: inline comments, ADR conventions, README standards
6. **Error Handling**: error propagation, logging strategy, user-facing messages

For EACH rule provide:
- **title**: short, actionable slug (e.g., "Always validate external input at the boundary")
- **description**: one-paragraph explanation
- **rationale**: why this rule matters for this specific project
- **examples**: 1-3 concrete code or configuration examples

Format the output as a Markdown document with one H2 heading per rule."""


def evals_from_rules(context: dict[str, Any]) -> str:
    rules = _first(context, "rules", "rules-from-context_output", "generated_rules", default="(no rules provided)")
    return f"""You are a quality-engineering expert. Using the project rules below, create a set of \
structured evaluation criteria that can be used to verify compliance with those rules during \
code review, CI checks, or AI-assisted development sessions.

## Project Rules

{_json(rules)}

## Project Context

Project Name: {_first(context, "project_name")}
Description: {_first(context, "description")}

## Instructions

For EACH rule, produce one or more evals. Each eval must include:
- **id**: a slug identifier (e.g., "eval-validate-input-boundary")
- **rule_ref**: the title or ID of the rule being evaluated
- **description**: what this eval checks
- **pass_criteria**: precise, observable conditions that indicate the rule is being followed
- **fail_criteria**: precise, observable conditions that indicate a violation
- **automation_hint**: whether this can be checked automatically (lint, test, static analysis) \
and how

Format the output as a YAML document with a top-level `evals:` list."""


def requirements_from_context(context: dict[str, Any]) -> str:
    return f"""You are a product manager and solutions architect. Using the project information below, \
produce a detailed requirements document.

## Project Information

Project Name: {_first(context, "project_name")}
Description: {_first(context, "description")}
Scope of Work: {_first(context, "sow")}
Repositories: {_json(_first(context, "repo_urls", "repos", default=[]))}
Additional Context: {_json(_first(context, "additional_context", "context", default={}))}

## Instructions

Produce a requirements document with the following sections:

### 1. Executive Summary
One-paragraph summary of what the project delivers and for whom.

### 2. Functional Requirements
List every distinct feature or capability. For each requirement:
- **FR-NNN**: short title
- **Priority**: Must / Should / Could (MoSCoW)
- **Description**: what the system must do
- **Acceptance Criteria**: measurable, testable conditions

### 3. Non-Functional Requirements
Cover: Performance, Security, Scalability, Reliability, Maintainability, Observability.

### 4. Constraints and Assumptions
List known technical constraints, business constraints, and assumptions being made.

### 5. Out of Scope
Explicitly list what is NOT included in this project.

### 6. Glossary
Define key domain terms used throughout this document.

Format the output as a structured Markdown document."""


def roadmap_from_requirements(context: dict[str, Any]) -> str:
    requirements = _first(
        context,
        "requirements",
        "requirements-from-context_output",
        "generated_requirements",
        default="(no requirements provided)",
    )
    return f"""You are a senior engineering lead responsible for delivery planning. Using the project \
requirements below, produce a phased implementation roadmap.

## Requirements

{_json(requirements)}

## Project Context

Project Name: {_first(context, "project_name")}
Description: {_first(context, "description")}
Repositories: {_json(_first(context, "repo_urls", "repos", default=[]))}

## Instructions

Produce a roadmap structured as 3-5 phases. For EACH phase include:

- **Phase N: Name**: meaningful phase title (e.g., "Phase 1: Foundation")
- **Goal**: one-sentence summary of what this phase achieves
- **Duration estimate**: calendar weeks or sprints
- **Deliverables**: concrete, shippable outputs
- **Functional Requirements covered**: list the FR-NNN IDs addressed in this phase
- **Technical tasks**: breakdown of engineering work (use a checklist format)
- **Dependencies**: what must be true before this phase can start
- **Success criteria**: how to know this phase is done

After the phased plan, include:
- **Critical Path**: the sequence of tasks where any delay directly delays the project
- **Risks and Mitigations**: top 5 risks with likelihood, impact, and mitigation strategy

Format the output as a Markdown document."""


def queries_from_objective(context: dict[str, Any]) -> str:
    return f"""You are a senior data analyst expert in SQL and data warehousing. Using the research \
objective and schema information below, generate SQL queries that will answer the research \
questions effectively.

## Research Objective

{_first(context, "objective")}

## Research Context

{_first(context, "context")}

## Available Schema

Tables discovered: {_json(_first(context, "available_tables", default=[]))}
Table definitions: {_json(_first(context, "table_definitions", "selected_tables", default={}))}

## Instructions

Generate a set of SQL queries that address the research objective. For EACH query provide:

- **Query ID**: short slug (e.g., "q1-daily-active-users")
- **Purpose**: one sentence describing what this query answers
- **SQL**: the complete, executable SQL statement
  - Use standard ANSI SQL where possible
  - Add comments inside the SQL explaining non-obvious logic
  - Parameterise date ranges using placeholders like `{{{{start_date}}}}` and `{{{{end_date}}}}`
  - Include appropriate LIMIT clauses for exploratory queries
- **Expected output columns**: list of column names with types and descriptions
- **Notes**: any caveats, known data quality issues, or follow-up queries suggested

Organise the queries from exploratory (broad counts, distributions) to specific \
(targeted metrics that directly answer the objective).

Format the output as a Markdown document with one H2 heading per query."""


def research_synthesis(context: dict[str, Any]) -> str:
    return f"""You are a senior data scientist and technical writer. Using the research objective, \
context, and query results below, synthesise a clear and actionable research findings report.

## Research Objective

{_first(context, "objective")}

## Research Context

{_first(context, "context")}

## Query Results

{_json(_first(context, "query_results", default="(no query results provided)"))}

## Available Schema Reference

{_json(_first(context, "table_definitions", "selected_tables", default={}))}

## Instructions

Produce a research findings report with the following sections:

### 1. Executive Summary
2-4 sentences: the most important finding and its business implication.

### 2. Methodology
Describe the data sources used, the queries run, and any data quality considerations or \
limitations discovered.

### 3. Key Findings
For each significant finding:
- **Finding N**: descriptive title
- **Evidence**: specific numbers, percentages, or trends from the query results
- **Interpretation**: what this means in business or research terms
- **Confidence**: High / Medium / Low, with reasoning

### 4. Trends and Patterns
Describe any temporal trends, correlations, anomalies, or unexpected patterns observed.

### 5. Limitations and Caveats
Be explicit about data gaps, potential biases, queries that returned no results, and \
assumptions made during the analysis.

### 6. Recommendations
Actionable next steps based on the findings. Each recommendation should state:
- What action to take
- Who owns it
- Why it follows from the data

### 7. Follow-up Research Questions
List 3-5 questions that this analysis surfaced but could not answer, to guide future research.

Format the output as a structured Markdown document suitable for sharing with stakeholders."""


GENERATORS: dict[str, GeneratorFn] = {
    "rules-from-context": rules_from_context,
    "evals-from-rules": evals_from_rules,
    "requirements-from-context": requirements_from_context,
    "roadmap-from-requirements": roadmap_from_requirements,
    "queries-from-objective": queries_from_objective,
    "research-synthesis": research_synthesis,
}


def get_generator(name: str) -> GeneratorFn | None:
    """Look up a prompt builder by its registered name."""
    return GENERATORS.get(name)


def list_generator_names() -> list[str]:
    return list(GENERATORS)


def build_generator_prompt(name: str, context: dict[str, Any]) -> str:
    """Render the prompt for ``name``, or a fallback listing the raw context."""
    generator = get_generator(name)
    if generator is None:
        return f'Generator "{name}" not found. Context collected:\n\n{_json(context)}'
    return generator(context)
