from typing import Annotated, Literal

from fastapi import Depends, Query, Request

from cashflow.commands.handlers import CommandBus
from cashflow.container import Container
from cashflow.event_store.projections import ProjectionEngine
from cashflow.event_store.repository import EventStore
from cashflow.queries.service import EventLogQueryService, ProjectionQueryService


def get_container(request: Request) -> Container:
    return request.app.state.container


ContainerDep = Annotated[Container, Depends(get_container)]


def get_command_bus(container: ContainerDep) -> CommandBus:
    return container.command_bus


def get_event_store(container: ContainerDep) -> EventStore:
    return container.event_store


def get_projection_engine(container: ContainerDep) -> ProjectionEngine:
    return container.projection_engine


def get_query_service(
    container: ContainerDep,
    source: Literal["projection", "events"] = Query(default="projection"),  # noqa: B008
) -> ProjectionQueryService | EventLogQueryService:
    if source == "events":
        return container.event_log_queries
    return container.projection_queries


CommandBusDep = Annotated[CommandBus, Depends(get_command_bus)]
EventStoreDep = Annotated[EventStore, Depends(get_event_store)]
ProjectionEngineDep = Annotated[ProjectionEngine, Depends(get_projection_engine)]
QueryServiceDep = Annotated[
    ProjectionQueryService | EventLogQueryService, Depends(get_query_service)
]
