"""
Campaign Workflows Feature.

Poll-driven execution engine for multi-step outbound campaigns.

Features:
- Workflow graph lookups (nodes, branch-labelled edges, execution plan)
- Timing gates (delay, waitUntil, timeSlot)
- Node actions (email with {{variable}} substitution, conditions, channel steps)
- Per-prospect cursors advanced one step per poll, leased against double execution
- Celery beat task and cron endpoint that trigger a poll
"""

__version__ = "1.0.0"
