"""Routinely core library: weekly routine scheduling engine.

Public API re-exports for convenient imports:
    from routinely import SchedulingService, DocumentStore, load_config, ...
"""

# Workspace, config & logging
from routinely.workspace import (
    Config,
    workspace_root,
    config_path,
    store_path,
    load_config,
    init_workspace,
    configure_logging,
    resolve_timezone,
)

# Errors
from routinely.errors import (
    RoutinelyError,
    InvalidFormat,
    InvalidInput,
    InvalidInterval,
    TimeConflict,
    NotFound,
    Forbidden,
    Transient,
    VersionConflict,
)

# Models
from routinely.models import (
    WEEKDAYS,
    CATEGORIES,
    TimeInterval,
    Activity,
    ActivityInput,
    ActivityPatch,
    CompletedActivity,
    User,
    UNSET,
    parse_wall_clock,
)
from routinely.bucket import DayBucket, Routine

# Validation
from routinely.validation import (
    normalize_weekday,
    validate_activity,
    activity_input_from_dict,
    patch_from_dict,
)

# Storage
from routinely.store import DocumentStore
from routinely.pagination import Page, paginate

# Engines
from routinely.service import SchedulingService
from routinely.reset import CompletionResetScheduler, start_reset_job
from routinely.stats import StatsAggregator
from routinely.users import authenticate, create_user, find_user, list_users

__version__ = "0.1.0"
