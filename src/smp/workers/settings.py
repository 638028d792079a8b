"""arq worker settings module.

Import path for arq CLI: arq smp.workers.settings.WorkerSettings
"""

from __future__ import annotations

from smp.workers.housekeeping import WorkerSettings

__all__ = ["WorkerSettings"]
