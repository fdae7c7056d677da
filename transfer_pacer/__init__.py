"""
Transfer Pacer

Paced daily value transfers from one account to a fixed destination, with
a balance guard and an observable telemetry stream.

Components:
- range_sampler: uniform int / wide-int draws within inclusive bounds
- balance_guard: 5% reserve admission check
- chain_client: chain access contract + EVM JSON-RPC client
- transfer_executor: one guarded, confirmed transfer per call
- scheduler: daily quota, pacing delays, UTC day-boundary rest
- telemetry: event stream, hourly counters, dashboard state
- transfer_history: SQLite outcome ledger
- config: environment-based settings

Cycle:
1. Sample today's quota
2. For each slot: sample amount, guarded transfer, emit outcome
3. Random pacing delay between slots
4. Rest until the next UTC midnight
"""

from .errors import (
    ClientError,
    ConfigurationError,
)
from .range_sampler import (
    AmountRange,
    DelayRange,
    QuotaRange,
    RandomRangeSampler,
)
from .balance_guard import (
    BalanceGuard,
    GuardDecision,
)
from .chain_client import (
    ChainClient,
    JsonRpcChainClient,
    NetworkInfo,
)
from .transfer_executor import (
    Failed,
    Sent,
    Skipped,
    TransferExecutor,
    TransferOutcome,
    TransferRequest,
)
from .telemetry import (
    BalanceSnapshot,
    DashboardState,
    HourlyCounters,
    HourlyTick,
    LogLine,
    TelemetrySink,
)
from .transfer_history import (
    TransferHistoryDB,
    TransferRecord,
)
from .scheduler import (
    DailyScheduler,
    DayPlan,
    Phase,
    SchedulerCancelled,
    seconds_until_next_utc_day,
)
from .config import (
    PacerSettings,
)

__all__ = [
    # Errors
    'ClientError',
    'ConfigurationError',

    # Sampling
    'AmountRange',
    'DelayRange',
    'QuotaRange',
    'RandomRangeSampler',

    # Guard
    'BalanceGuard',
    'GuardDecision',

    # Chain access
    'ChainClient',
    'JsonRpcChainClient',
    'NetworkInfo',

    # Execution
    'TransferExecutor',
    'TransferRequest',
    'TransferOutcome',
    'Sent',
    'Skipped',
    'Failed',

    # Telemetry
    'TelemetrySink',
    'LogLine',
    'HourlyTick',
    'BalanceSnapshot',
    'HourlyCounters',
    'DashboardState',

    # History
    'TransferHistoryDB',
    'TransferRecord',

    # Scheduling
    'DailyScheduler',
    'DayPlan',
    'Phase',
    'SchedulerCancelled',
    'seconds_until_next_utc_day',

    # Configuration
    'PacerSettings',
]

__version__ = '1.0.0'
__description__ = 'Paced daily transfers with balance guard'
