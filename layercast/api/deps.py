from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from layercast.config import get_settings
from layercast.middleware.request_context import RequestContext, get_request_context
from layercast.services.compose_service import ComposeService
from layercast.services.container_service import ContainerService


@lru_cache
def get_container_service() -> ContainerService:
    return ContainerService(get_settings())


@lru_cache
def get_compose_service() -> ComposeService:
    return ComposeService(get_settings(), container_service=get_container_service())


Composer = Annotated[ComposeService, Depends(get_compose_service)]
Containers = Annotated[ContainerService, Depends(get_container_service)]
Context = Annotated[RequestContext, Depends(get_request_context)]
