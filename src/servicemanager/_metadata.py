"""Type metadata used by the resolver.

The resolution algorithm only talks to a `TypeMetadataProvider`; the default
`ReflectionMetadata` answers its questions with runtime introspection
(`inspect`, `importlib`, `typing`). Another provider, e.g. one backed by a
prebuilt table of descriptors, can be passed to `ServiceManager(metadata=...)`.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import typing
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, Protocol, get_type_hints


if TYPE_CHECKING:
    TypeToken = type | str


logger = logging.getLogger(__name__)

_SKIPPED_SUPERTYPES = (object, Generic, Protocol)


@dataclass(frozen=True)
class ParamDescriptor:
    name: str
    position: int  # 1-based
    kind: inspect._ParameterKind
    annotation: Any  # None when absent
    optional: bool
    default: Any = None

    @property
    def variadic(self) -> bool:
        return self.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)


class TypeMetadataProvider(Protocol):
    def identify(self, token: TypeToken) -> str: ...

    def find_type(self, identifier: str) -> type | None: ...

    def is_abstract(self, cls: type) -> bool: ...

    def supertypes(self, cls: type) -> list[type]: ...

    def constructor_params(self, cls: type) -> list[ParamDescriptor]: ...


class ReflectionMetadata:
    """Metadata provider built on runtime introspection.

    Classes seen by `identify()` are remembered, so identifiers of classes
    that cannot be imported by name (local classes, classes created at
    runtime) still resolve with `find_type()`.
    """

    def __init__(self) -> None:
        self._known: dict[str, type] = {}

    def identify(self, token: TypeToken) -> str:
        if isinstance(token, str):
            return token

        if not inspect.isclass(token):
            msg = f"Type identifier must be a class or a dotted string, got {type(token).__name__}"
            raise TypeError(msg)

        identifier = f"{token.__module__}.{token.__qualname__}"
        self._known.setdefault(identifier, token)
        return identifier

    def find_type(self, identifier: str) -> type | None:
        known = self._known.get(identifier)
        if known is not None:
            return known

        parts = identifier.split(".")
        for split in range(len(parts) - 1, 0, -1):
            try:
                obj: Any = importlib.import_module(".".join(parts[:split]))
            except ImportError:
                continue

            for attr in parts[split:]:
                obj = getattr(obj, attr, None)
                if obj is None:
                    return None

            if not inspect.isclass(obj):
                return None

            self._known[identifier] = obj
            return obj

        return None

    def is_abstract(self, cls: type) -> bool:
        return _is_protocol(cls) or inspect.isabstract(cls)

    def supertypes(self, cls: type) -> list[type]:
        return [base for base in cls.__mro__[1:] if base not in _SKIPPED_SUPERTYPES]

    def constructor_params(self, cls: type) -> list[ParamDescriptor]:
        try:
            sig = inspect.signature(cls)
        except (TypeError, ValueError):
            # some builtin and extension types expose no signature
            return []

        hints = _get_init_type_hints(cls, sig)

        params = []
        for position, (name, p) in enumerate(sig.parameters.items(), start=1):
            annotation = hints.get(name, p.annotation)
            has_default = p.default is not inspect.Parameter.empty
            params.append(
                ParamDescriptor(
                    name=name,
                    position=position,
                    kind=p.kind,
                    annotation=None if annotation is inspect.Parameter.empty else annotation,
                    optional=has_default or p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD),
                    default=p.default if has_default else None,
                )
            )
        return params


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def _is_protocol(tp: type) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def _is_protocol(tp: type) -> bool:
        """Detect whether 'tp' declares a typing.Protocol (not merely implements one)."""
        return inspect.isclass(tp) and tp is not Protocol and bool(getattr(tp, "_is_protocol", False))


def _get_init_type_hints(cls: type, sig: inspect.Signature) -> dict[str, Any]:
    init = inspect.unwrap(inspect.getattr_static(cls, "__init__"))
    try:
        hints = get_type_hints(init)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Evaluating %s type hints one by one (%r)", cls.__qualname__, exc)
        hints = _get_type_hints_one_by_one(cls, init, sig)

    hints.pop("return", None)
    return hints


def _get_type_hints_one_by_one(cls: type, init: Any, sig: inspect.Signature) -> dict[str, Any]:
    """Evaluate each string annotation alone, so one bad hint only spoils its own parameter."""
    globalns = getattr(init, "__globals__", None)
    localns = dict(vars(cls))

    hints: dict[str, Any] = {}
    for name, p in sig.parameters.items():
        if not isinstance(p.annotation, str):
            continue

        def shim() -> None: ...

        shim.__annotations__ = {name: p.annotation}
        try:
            hints.update(get_type_hints(shim, globalns=globalns, localns=localns))
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Cannot evaluate annotation %r of parameter '%s' of %s.__init__ (%r)",
                p.annotation,
                name,
                cls.__qualname__,
                exc,
            )

    return hints
