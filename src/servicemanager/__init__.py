"""Singleton service manager with constructor injection.

This package resolves a class into a fully wired instance: constructor
parameters annotated with classes are resolved recursively, each built object
is kept as a singleton, and abstract or parent types can be aliased to a
concrete implementation.

Exports:
- `ServiceManager`: the resolver; registers itself on construction so it can
  be injected like any other service.
- `ServiceInterface`: marker base of service containers.
- `ReflectionMetadata`, `TypeMetadataProvider`, `ParamDescriptor`: the type
  introspection layer the resolver relies on, replaceable per manager.
- `ResolutionError` and its subclasses: errors raised while resolving.
"""

from ._errors import (
    ClassNotFoundError,
    CyclicDependencyError,
    InstantiationError,
    InterfaceWithoutAliasError,
    NotAnObjectError,
    ParamTypeError,
    ResolutionError,
)
from ._manager import ServiceInterface, ServiceManager
from ._metadata import ParamDescriptor, ReflectionMetadata, TypeMetadataProvider


__all__ = [
    "ClassNotFoundError",
    "CyclicDependencyError",
    "InstantiationError",
    "InterfaceWithoutAliasError",
    "NotAnObjectError",
    "ParamDescriptor",
    "ParamTypeError",
    "ReflectionMetadata",
    "ResolutionError",
    "ServiceInterface",
    "ServiceManager",
    "TypeMetadataProvider",
]
