"""
FastAPI dependency injection utilities.

Provides reusable dependencies for units of work, the detector pipeline,
and authentication.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from teller_risk.core.auth import AuthenticatedUser, get_current_user
from teller_risk.core.config import Settings, get_settings
from teller_risk.core.database import get_session_factory
from teller_risk.core.logging import bind_actor_context
from teller_risk.core.retry import RetryPolicy
from teller_risk.core.unit_of_work import UnitOfWork
from teller_risk.detection.pipeline import RiskPipeline


def get_current_user_dep(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    """
    Extract and verify the current user, binding them to the log context.

    Role checks happen in the services so that every caller, not just
    HTTP, goes through them.
    """
    bind_actor_context(user.user_id, user.primary_role)
    return user


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user_dep)]


def get_settings_dep() -> Settings:
    return get_settings()


def get_unit_of_work(settings: Settings = Depends(get_settings_dep)) -> UnitOfWork:
    """Unit of work bound to the global session factory."""
    return UnitOfWork(get_session_factory(), RetryPolicy.from_config(settings.store))


@lru_cache
def _build_pipeline() -> RiskPipeline:
    settings = get_settings()
    return RiskPipeline(settings.detection, settings.risk)


def get_risk_pipeline() -> RiskPipeline:
    """Shared detector pipeline; detectors hold no mutable state."""
    return _build_pipeline()


def reset_risk_pipeline() -> None:
    _build_pipeline.cache_clear()


SettingsDep = Annotated[Settings, Depends(get_settings_dep)]
UnitOfWorkDep = Annotated[UnitOfWork, Depends(get_unit_of_work)]
PipelineDep = Annotated[RiskPipeline, Depends(get_risk_pipeline)]
