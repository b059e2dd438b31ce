from __future__ import annotations

import inspect
import logging
import threading
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._errors import (
    ClassNotFoundError,
    CyclicDependencyError,
    InstantiationError,
    InterfaceWithoutAliasError,
    NotAnObjectError,
    ParamTypeError,
    ResolutionError,
)
from ._metadata import ReflectionMetadata


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ._metadata import ParamDescriptor, TypeMetadataProvider

    T = TypeVar("T")

    TypeToken = type | str


class ServiceInterface:
    """Marker for objects which hold services themselves.

    A resolver never instantiates a class carrying this marker; such classes
    are only served from registered instances (the manager registers itself).
    """


class ServiceManager(ServiceInterface):
    """Singleton service container with constructor injection.

    - every resolved object is cached and returned on later requests
    - constructor parameters annotated with a class are resolved recursively
    - parent classes of a registered object are aliased to its class
    - aliases map abstract types (Protocols, ABCs) to implementations.
    """

    def __init__(self, metadata: TypeMetadataProvider | None = None) -> None:
        self._metadata: TypeMetadataProvider = metadata if metadata is not None else ReflectionMetadata()
        self._services: dict[str, object] = {}
        self._aliases: dict[str, str] = {}
        self._resolving: list[str] = []
        self._lock = threading.RLock()

        self.register(self)

    def register(self, service: object) -> None:
        """Register an already built object.

        Useful for objects which need a specific configuration or which are
        not services strictly speaking (a settings object, a DB session...).
        The object replaces any instance registered for its class, while
        aliases of its parent classes are only added when missing.
        """
        if service is None or inspect.isclass(service) or type(service).__module__ == "builtins":
            msg = f"Expected an object instance, got {type(service).__name__}: {service!r}"
            raise NotAnObjectError(msg, self)

        cls = type(service)
        with self._lock:
            identifier = self._metadata.identify(cls)
            self._services[identifier] = service
            logger.debug("Registered service %s", identifier)

            for supertype in self._metadata.supertypes(cls):
                self.set_alias(cls, supertype, replace=False)

    def set_alias(self, concrete_type: TypeToken, alias_type: TypeToken, *, replace: bool = True) -> bool:
        """Map `alias_type` to `concrete_type`.

        Example:
          manager.set_alias(SqlRepository, Repository)

        Returns False when `replace` is False and an alias already exists.
        """
        with self._lock:
            concrete = self._identify(concrete_type)
            alias = self._identify(alias_type)

            if not replace and alias in self._aliases:
                return False

            self._aliases[alias] = concrete
            logger.debug("Alias %s -> %s", alias, concrete)
            return True

    def get_alias(self, type_: TypeToken) -> str | None:
        with self._lock:
            return self._aliases.get(self._identify(type_))

    @overload
    def resolve(self, type_: type[T]) -> T: ...

    @overload
    def resolve(self, type_: str) -> object: ...

    def resolve(self, type_: TypeToken) -> object:
        """Return the service for `type_`, building it on first request.

        - A registered instance is returned as is.
        - An alias is followed once to its concrete class.
        - Otherwise the class is instantiated with its dependencies resolved,
          registered, and returned.
        """
        with self._lock:
            identifier = self._identify(type_)
            if identifier in self._services:
                return self._services[identifier]

            alias = self._aliases.get(identifier)
            if alias is not None:
                identifier = alias
                if identifier in self._services:
                    return self._services[identifier]

            cls = self._metadata.find_type(identifier)
            if cls is None:
                msg = f"Class {identifier!r} not found"
                raise ClassNotFoundError(msg, self)

            # string identifiers may name a re-export of the class
            identifier = self._metadata.identify(cls)
            if identifier in self._services:
                return self._services[identifier]

            if self._metadata.is_abstract(cls):
                msg = f"{identifier!r} is an interface or abstract class and no implementation is aliased to it"
                raise InterfaceWithoutAliasError(msg, self)

            if issubclass(cls, ServiceInterface):
                msg = f"{identifier!r} is a service container and can not be instantiated as a service"
                raise NotAnObjectError(msg, self)

            if cls.__module__ == "builtins":
                msg = f"{identifier!r} is a builtin type and can not be instantiated as a service"
                raise NotAnObjectError(msg, self)

            service = self._instantiate(identifier, cls)
            self.register(service)
            return service

    def invoke(self, type_: TypeToken) -> object:
        return self.resolve(type_)

    __call__ = invoke

    def _identify(self, type_: TypeToken) -> str:
        try:
            return self._metadata.identify(type_)
        except TypeError as exc:
            raise ClassNotFoundError(str(exc), self) from exc

    def _instantiate(self, identifier: str, cls: type[T]) -> T:
        if identifier in self._resolving:
            chain = [*self._resolving[self._resolving.index(identifier) :], identifier]
            raise CyclicDependencyError(chain, self)

        self._resolving.append(identifier)
        try:
            args, kwargs = self._constructor_args(cls)

            logger.debug("Instantiating %s", identifier)
            return cls(*args, **kwargs)
        except ResolutionError:
            raise
        except Exception as exc:
            msg = f"Error while instantiating the class {identifier}: {exc!r}"
            raise InstantiationError(msg, self) from exc
        finally:
            self._resolving.pop()

    def _constructor_args(self, cls: type) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for param in self._metadata.constructor_params(cls):
            if param.variadic:
                continue

            if param.optional:
                value = param.default
            else:
                value = self.resolve(self._dependency_type(cls, param))

            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[param.name] = value

        return args, kwargs

    def _dependency_type(self, cls: type, param: ParamDescriptor) -> type:
        where = f"parameter '{param.name}' (#{param.position}) of {cls.__qualname__}.__init__"

        if param.annotation is None:
            msg = f"Cannot inject {where}: param does not have a type annotation"
            raise ParamTypeError(msg, self)

        ann = param.annotation
        if ann is Any or not inspect.isclass(ann) or ann.__module__ == "builtins":
            ann_repr = getattr(ann, "__name__", repr(ann))
            msg = f"Cannot inject {where}: param type is not a class or an interface (type: {ann_repr})"
            raise ParamTypeError(msg, self)

        return ann
