from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from ._manager import ServiceManager


class ResolutionError(RuntimeError):
    """Base class for every error raised by a `ServiceManager`.

    The manager that raised is kept in `manager`. Errors wrapping another
    exception are raised `from` it, so the wrapped exception is available as
    `__cause__` (or `cause`).
    """

    def __init__(self, message: str, manager: ServiceManager) -> None:
        super().__init__(message)
        self.manager = manager

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


class NotAnObjectError(ResolutionError):
    pass


class ClassNotFoundError(ResolutionError):
    pass


class InterfaceWithoutAliasError(ResolutionError):
    pass


class ParamTypeError(ResolutionError):
    pass


class InstantiationError(ResolutionError):
    pass


class CyclicDependencyError(ResolutionError):
    def __init__(self, chain: list[str], manager: ServiceManager) -> None:
        msg = f"Circular constructor dependency: {' -> '.join(chain)}"
        super().__init__(msg, manager)
        self.chain = chain
