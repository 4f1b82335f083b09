"""
Runtime settings for sql-scalerctl

Values come from the process environment, optionally populated from a .env
file, and can be overridden by CLI flags.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .constants import (
    DEFAULT_CLOUDSQL_API_ROOT,
    DEFAULT_COUNTERS_JOB,
    DEFAULT_TIER_PREFIX,
    TABLE_SCALER_STATE,
)


@dataclass
class Settings:
    """Settings shared by every scaling request handled by this process"""

    # May contain a {state_project_id} placeholder
    state_database_url: str | None = None
    state_table: str = TABLE_SCALER_STATE
    pushgateway_url: str | None = None
    counters_job: str = DEFAULT_COUNTERS_JOB
    cloudsql_api_root: str = DEFAULT_CLOUDSQL_API_ROOT
    tier_prefix: str = DEFAULT_TIER_PREFIX

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        return cls(
            state_database_url=os.getenv("STATE_DATABASE_URL"),
            state_table=os.getenv("STATE_TABLE", TABLE_SCALER_STATE),
            pushgateway_url=os.getenv("PUSHGATEWAY_URL") or None,
            counters_job=os.getenv("COUNTERS_JOB", DEFAULT_COUNTERS_JOB),
            cloudsql_api_root=os.getenv("CLOUDSQL_API_ROOT", DEFAULT_CLOUDSQL_API_ROOT),
            tier_prefix=os.getenv("CLOUDSQL_TIER_PREFIX", DEFAULT_TIER_PREFIX),
        )

    def database_url_for(self, state_project_id: str) -> str:
        """Resolve the state database conninfo for a storage account"""
        if not self.state_database_url:
            raise ValueError(
                "STATE_DATABASE_URL environment variable or --state-database-url "
                "required"
            )
        return self.state_database_url.replace(
            "{state_project_id}", state_project_id
        )
