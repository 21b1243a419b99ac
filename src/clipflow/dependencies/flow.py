"""Dependency that hands route handlers the process's flow services."""

from typing import Annotated

from fastapi import Depends, Request

from clipflow.services.container import FlowServices


def get_flow_services(request: Request) -> FlowServices:
    """Return the container the app lifespan stored on `app.state`."""
    services: FlowServices = request.app.state.flow_services
    return services


FlowServicesDep = Annotated[FlowServices, Depends(get_flow_services)]
