"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends

from api.config import Settings, get_settings
from api.exceptions import ConfigurationError
from tracker.coordinator import FanOutCoordinator
from tracker.insights import InsightConfigurationError, InsightGenerator
from tracker.storage import ResultStore

__all__ = ["SettingsDep", "ResultStoreDep", "CoordinatorDep", "InsightGeneratorDep"]


# Settings dependency
SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_result_store(settings: SettingsDep) -> ResultStore:
    """Get the result history store."""
    return ResultStore(settings.results_file)


ResultStoreDep = Annotated[ResultStore, Depends(get_result_store)]


def get_coordinator() -> FanOutCoordinator:
    """Get a fan-out coordinator."""
    return FanOutCoordinator()


CoordinatorDep = Annotated[FanOutCoordinator, Depends(get_coordinator)]


def get_insight_generator(settings: SettingsDep) -> InsightGenerator:
    """Construct the insight generator, failing fast without credentials."""
    try:
        return InsightGenerator(
            api_key=settings.openai_api_key,
            model=settings.insights_model,
            timeout_seconds=settings.insights_timeout_seconds,
        )
    except InsightConfigurationError as e:
        raise ConfigurationError(str(e)) from e


InsightGeneratorDep = Annotated[InsightGenerator, Depends(get_insight_generator)]
