"""
Policy configuration.

Thresholds default to the standing business rules and can be tuned per
deployment through environment variables (or a .env file at the project root).
"""

import os
import logging
from pathlib import Path
from typing import Dict
from dotenv import load_dotenv

from app.policy.errors import InvalidInput
from app.policy.models import PolicyConfig

logger = logging.getLogger(__name__)

project_root = Path(__file__).parent.parent.parent

# Environment variable -> PolicyConfig field
ENV_FIELDS: Dict[str, str] = {
    "LEAVE_MAX_DAYS": "max_leave_days",
    "LEAVE_WORKDAY_HOURS": "workday_hours",
    "LEAVE_OVERLOAD_PERCENT": "overload_percent",
    "LEAVE_FAST_TRACK_DAYS": "fast_track_max_days",
    "LEAVE_FAST_TRACK_ABSENCE": "fast_track_max_absence",
    "LEAVE_FAST_TRACK_IMPACT": "fast_track_max_impact",
    "LEAVE_HIGH_IMPACT": "high_impact_threshold",
}


def load_policy_config(load_env_file: bool = True) -> PolicyConfig:
    """
    Build a PolicyConfig from the environment.

    Unset variables keep their defaults.

    Raises:
        InvalidInput: if a variable is set to a value that is not a valid number
    """
    if load_env_file:
        load_dotenv(project_root / ".env")

    overrides = {}
    for env_name, field_name in ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == "":
            continue
        overrides[field_name] = raw.strip()

    try:
        config = PolicyConfig(**overrides)
    except ValueError as e:
        raise InvalidInput(f"Invalid leave policy configuration: {e}") from e

    if overrides:
        logger.info(f"Leave policy overrides applied: {sorted(overrides)}")
    return config
