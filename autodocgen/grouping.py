"""Partition routes into named modules for per-module documentation."""

import logging
import re
from typing import Callable, Dict, List, NamedTuple, Optional

from .models import (
    AnalysisResult,
    ControllerDescriptor,
    ModuleChunk,
    RouteDescriptor,
    ServiceDescriptor,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)

APP_MODULE = "app"
MISC_MODULE = "misc"

NAME_SUFFIX_RE = re.compile(r"(Service|Controller|Dto|Entity|Model|Type|Interface)$", re.IGNORECASE)
UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")

# Handler keyword -> module, checked in order
CRUD_KEYWORDS = [
    (("create", "add"), "create"),
    (("find", "get", "list"), "read"),
    (("update", "edit", "modify"), "update"),
    (("delete", "remove"), "delete"),
    (("hello", "health", "status"), APP_MODULE),
]

METHOD_MODULES = {
    "POST": "create",
    "GET": "read",
    "PUT": "update",
    "PATCH": "update",
    "DELETE": "delete",
}


class GroupingContext(NamedTuple):
    """Lookups shared by every strategy during one grouping pass."""

    controller_modules: Dict[str, str]
    service_modules: List[str]


Strategy = Callable[[RouteDescriptor, GroupingContext], Optional[str]]


def derive_module_name(name: str) -> Optional[str]:
    """Strip a role suffix, lowercase and pluralize a class name."""
    if not name:
        return None
    clean = NAME_SUFFIX_RE.sub("", name).lower()
    if not clean:
        return None
    if clean.endswith("y"):
        return clean[:-1] + "ies"
    if clean.endswith("s"):
        return clean
    return clean + "s"


def sanitize_module_name(name: str) -> str:
    """Make a module name safe to use as a file name."""
    return UNSAFE_CHARS_RE.sub("_", name)


def build_context(
    controllers: List[ControllerDescriptor],
    services: List[ServiceDescriptor],
) -> GroupingContext:
    controller_modules: Dict[str, str] = {}
    for controller in controllers:
        module = derive_module_name(controller.name)
        if not module:
            continue
        for key in controller.routes:
            # First controller listing a route key owns it
            controller_modules.setdefault(key, module)

    service_modules: List[str] = []
    for service in services:
        module = derive_module_name(service.name)
        if module and module not in service_modules:
            service_modules.append(module)

    return GroupingContext(controller_modules, service_modules)


def by_controller(route: RouteDescriptor, context: GroupingContext) -> Optional[str]:
    return context.controller_modules.get(route.route_key)


def by_service_name(route: RouteDescriptor, context: GroupingContext) -> Optional[str]:
    handler = route.handler.lower()
    path = route.path.lower()
    for module in context.service_modules:
        if module in handler or module in path:
            return module
    return None


def by_crud_keyword(route: RouteDescriptor, context: GroupingContext) -> Optional[str]:
    handler = route.handler.lower()
    for keywords, module in CRUD_KEYWORDS:
        if any(keyword in handler for keyword in keywords):
            return module
    return None


def by_path_segment(route: RouteDescriptor, context: GroupingContext) -> Optional[str]:
    for segment in route.path.split("/"):
        if segment and not segment.startswith(":"):
            return segment
    return None


def by_http_method(route: RouteDescriptor, context: GroupingContext) -> Optional[str]:
    if route.method == "GET" and route.path in ("/", ""):
        return APP_MODULE
    return METHOD_MODULES.get(route.method, MISC_MODULE)


STRATEGIES: List[Strategy] = [
    by_controller,
    by_service_name,
    by_crud_keyword,
    by_path_segment,
    by_http_method,
]


def module_for_route(route: RouteDescriptor, context: GroupingContext) -> str:
    """Module name from the first strategy that yields one."""
    for strategy in STRATEGIES:
        module = strategy(route, context)
        if module:
            return sanitize_module_name(module)
    return MISC_MODULE


def group_routes(
    routes: List[RouteDescriptor],
    controllers: Optional[List[ControllerDescriptor]] = None,
    services: Optional[List[ServiceDescriptor]] = None,
) -> Dict[str, List[RouteDescriptor]]:
    """Group routes by module name, in first-seen order."""
    context = build_context(controllers or [], services or [])
    groups: Dict[str, List[RouteDescriptor]] = {}
    for route in routes:
        groups.setdefault(module_for_route(route, context), []).append(route)
    return groups


def _matches_module(name: str, module: str) -> bool:
    return module.lower() in name.lower()


def related_services(module: str, services: List[ServiceDescriptor]) -> List[ServiceDescriptor]:
    return [s for s in services if _matches_module(s.name, module)]


def related_types(module: str, types: List[TypeDescriptor]) -> List[TypeDescriptor]:
    return [t for t in types if _matches_module(t.name, module)]


def build_module_chunks(result: AnalysisResult) -> List[ModuleChunk]:
    """Split an analysis into module chunks with their related services and types."""
    groups = group_routes(result.routes, result.controllers, result.services)
    chunks = [
        ModuleChunk(
            name=name,
            routes=routes,
            services=related_services(name, result.services),
            types=related_types(name, result.types),
        )
        for name, routes in groups.items()
    ]
    logger.debug(f"Grouped {len(result.routes)} routes into {len(chunks)} modules")
    return chunks
