"""Common data models shared by the analyzer, grouping and output layers."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FrameworkType(str, Enum):
    """Web frameworks recognized by the detector."""

    EXPRESS = "express"
    NESTJS = "nestjs"
    FASTIFY = "fastify"
    KOA = "koa"
    GENERIC = "generic"
    UNKNOWN = "unknown"


class _Model(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenModel(_Model):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class FrameworkDetectionResult(_FrozenModel):
    """Framework detection result."""

    framework: FrameworkType
    confidence: int = Field(ge=0, le=100)
    indicators: List[str] = []


class ParameterDescriptor(_FrozenModel):
    """A route or method parameter."""

    name: str
    type: str = "any"
    optional: bool = False
    decorator: Optional[str] = None


class RouteDescriptor(_FrozenModel):
    """A recognized route declaration."""

    method: str
    path: str
    handler: str
    framework: str
    parameters: List[ParameterDescriptor] = []
    middleware: List[str] = []
    file_path: Optional[str] = None

    @property
    def route_key(self) -> str:
        return f"{self.method} {self.path}"


class MethodDescriptor(_Model):
    """A method declared on a service class."""

    name: str
    parameters: List[ParameterDescriptor] = []
    return_type: str = "any"
    is_public: bool = True
    is_async: bool = False


class ControllerDescriptor(_Model):
    """A controller class and the keys of the routes it declares."""

    name: str
    file_path: str
    framework: str
    routes: List[str] = []


class ServiceDescriptor(_Model):
    """A service class."""

    name: str
    file_path: str
    framework: str
    methods: List[MethodDescriptor] = []
    dependencies: List[str] = []


class PropertyDescriptor(_Model):
    """A property of an interface, class, enum or object type."""

    name: str
    type: str = "any"
    optional: bool = False
    decorators: List[str] = []


class TypeDescriptor(_Model):
    """An interface, class, enum or type alias declaration."""

    name: str
    kind: str
    file_path: str
    properties: List[PropertyDescriptor] = []


class AnalysisMetadata(_Model):
    """Summary counts and timing for one analysis."""

    total_routes: int = 0
    total_controllers: int = 0
    total_services: int = 0
    total_types: int = 0
    analysis_time: float = 0.0
    module_name: Optional[str] = None


class AnalysisResult(_Model):
    """Complete analysis of one project."""

    framework: str = FrameworkType.UNKNOWN.value
    routes: List[RouteDescriptor] = []
    controllers: List[ControllerDescriptor] = []
    services: List[ServiceDescriptor] = []
    types: List[TypeDescriptor] = []
    metadata: AnalysisMetadata = Field(default_factory=AnalysisMetadata)

    def refresh_counts(self) -> None:
        """Make the metadata counts match the lists."""
        self.metadata.total_routes = len(self.routes)
        self.metadata.total_controllers = len(self.controllers)
        self.metadata.total_services = len(self.services)
        self.metadata.total_types = len(self.types)

    def to_json_dict(self) -> Dict[str, Any]:
        """Serialize to the analysis file shape."""
        self.refresh_counts()
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        return cls.model_validate(data)


class ModuleChunk(BaseModel):
    """Routes, services and types grouped under one module name."""

    name: str
    routes: List[RouteDescriptor] = []
    services: List[ServiceDescriptor] = []
    types: List[TypeDescriptor] = []

    def to_analysis(self, parent: AnalysisResult) -> AnalysisResult:
        """Build a module-filtered analysis from the parent result."""
        return AnalysisResult(
            framework=parent.framework,
            routes=list(self.routes),
            controllers=list(parent.controllers),
            services=list(self.services),
            types=list(self.types),
            metadata=AnalysisMetadata(
                total_routes=len(self.routes),
                total_controllers=len(parent.controllers),
                total_services=len(self.services),
                total_types=len(self.types),
                analysis_time=parent.metadata.analysis_time,
                module_name=self.name,
            ),
        )
