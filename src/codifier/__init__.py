# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Codifier - Institutional memory server for AI agents.

Codifier exposes a small MCP tool surface over HTTP. Agents use it to keep
project knowledge (rules, contracts, learnings, research findings) and to
walk through guided playbooks that collect answers step by step.

Architecture:
  Projects
    -> Memories (typed, tagged, versioned on update)
    -> Repositories (condensed snapshots packed by repomix)
    -> Workflow sessions (one playbook run, advanced step by step)

Transport bindings:
  - POST /rpc: stateless, one protocol engine per request
  - GET /stream + POST /stream-messages: legacy SSE, one engine per stream

Server entry point: ``codifier-server``
"""

__version__ = "0.1.0"

from . import (
    core as core,
)
