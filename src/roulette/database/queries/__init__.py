"""Database query functions for Roulette.

This module provides async query functions for all database entities:
- Reviewer pool, workload, and fairness lookups plus admin tuning
- Assignment creation, signal-driven updates, and the reaction audit log
- Problem rule evaluation bookkeeping
- Status signal mapping overrides
"""

from roulette.database.queries.assignment import (
    add_problem_signal,
    apply_status_signal,
    assign_reviewer,
    create_assignment,
    get_assignment,
    get_assignment_by_message,
    list_open_assignments,
    list_reviewer_events,
    record_reaction_event,
    remove_problem_signal,
    set_message_ref,
)
from roulette.database.queries.reviewer import (
    add_repository_reviewer,
    deactivate_repository_reviewer,
    get_eligible_links,
    get_open_complexities,
    get_recent_assignment_counts,
    get_repository,
    update_repository_reviewer,
)
from roulette.database.queries.rule import (
    get_open_problems,
    list_active_rules,
    mark_problem_notified,
    open_problem,
    resolve_problem,
    seed_problem_rules,
)
from roulette.database.queries.signal import load_signal_map, seed_signal_mappings

__all__ = [
    # Reviewer queries
    "get_repository",
    "get_eligible_links",
    "get_open_complexities",
    "get_recent_assignment_counts",
    "add_repository_reviewer",
    "update_repository_reviewer",
    "deactivate_repository_reviewer",
    # Assignment queries
    "create_assignment",
    "get_assignment",
    "get_assignment_by_message",
    "list_open_assignments",
    "assign_reviewer",
    "set_message_ref",
    "record_reaction_event",
    "list_reviewer_events",
    "apply_status_signal",
    "add_problem_signal",
    "remove_problem_signal",
    # Rule queries
    "list_active_rules",
    "get_open_problems",
    "open_problem",
    "resolve_problem",
    "mark_problem_notified",
    "seed_problem_rules",
    # Signal mapping queries
    "load_signal_map",
    "seed_signal_mappings",
]
