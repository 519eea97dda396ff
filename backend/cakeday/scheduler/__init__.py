"""Birthday evaluation, announcement and role-expiry scheduling."""

from .dispatcher import AnnouncementDispatcher, Outcome, compute_expiry
from .evaluator import BirthdayEvaluator, Evaluation, is_announcement_due
from .interfaces import (
    BirthdayRecordProvider,
    ConfigurationProvider,
    MentionPolicy,
    RoleLifecycleStore,
    RolePlatform,
)
from .loop import BirthdayScheduler, PassReport, SchedulerState, seconds_until_next_tick
from .sweeper import ExpirySweeper, SweepResult
from .templates import render, render_announcement

__all__ = [
    "AnnouncementDispatcher",
    "BirthdayEvaluator",
    "BirthdayRecordProvider",
    "BirthdayScheduler",
    "ConfigurationProvider",
    "Evaluation",
    "ExpirySweeper",
    "MentionPolicy",
    "Outcome",
    "PassReport",
    "RoleLifecycleStore",
    "RolePlatform",
    "SchedulerState",
    "SweepResult",
    "compute_expiry",
    "is_announcement_due",
    "render",
    "render_announcement",
    "seconds_until_next_tick",
]
