import inspect
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol, runtime_checkable

import pytest

from servicemanager import ParamTypeError, ReflectionMetadata, ServiceManager


class Outer:
    class Inner: ...


class Dependency: ...


class Unresolvable:
    def __init__(self, dep: "MissingType"):  # noqa: F821
        self.dep = dep


class TestReflectionMetadata:
    def test_identify_class(self):
        meta = ReflectionMetadata()
        assert meta.identify(Dependency) == f"{__name__}.Dependency"
        assert meta.identify(Outer.Inner) == f"{__name__}.Outer.Inner"

    def test_identify_string_is_returned_unchanged(self):
        assert ReflectionMetadata().identify("pkg.mod.Thing") == "pkg.mod.Thing"

    def test_identify_rejects_non_types(self):
        with pytest.raises(TypeError):
            ReflectionMetadata().identify(42)

    def test_find_type_by_import(self):
        meta = ReflectionMetadata()
        assert meta.find_type("collections.OrderedDict") is OrderedDict
        assert meta.find_type(f"{__name__}.Outer.Inner") is Outer.Inner

    def test_find_type_returns_none_for_unknown_or_non_class(self):
        meta = ReflectionMetadata()
        assert meta.find_type("no.such.module.Thing") is None
        assert meta.find_type("collections.NoSuchClass") is None
        assert meta.find_type("os.path") is None
        assert meta.find_type("Dependency") is None

    def test_find_type_knows_identified_local_classes(self):
        class Local: ...

        meta = ReflectionMetadata()
        identifier = meta.identify(Local)
        assert "<locals>" in identifier
        assert meta.find_type(identifier) is Local

    def test_is_abstract(self):
        class Proto(Protocol):
            def run(self) -> None: ...

        @runtime_checkable
        class RuntimeProto(Protocol):
            def run(self) -> None: ...

        class ExplicitImpl(Proto):
            def run(self) -> None: ...

        class Base(ABC):
            @abstractmethod
            def run(self) -> None: ...

        class Concrete(Base):
            def run(self) -> None: ...

        meta = ReflectionMetadata()
        assert meta.is_abstract(Proto)
        assert meta.is_abstract(RuntimeProto)
        assert meta.is_abstract(Base)
        assert not meta.is_abstract(ExplicitImpl)
        assert not meta.is_abstract(Concrete)
        assert not meta.is_abstract(Dependency)

    def test_supertypes_in_mro_order_without_object(self):
        class Base: ...

        class Middle(Base): ...

        class Leaf(Middle): ...

        assert ReflectionMetadata().supertypes(Leaf) == [Middle, Base]
        assert ReflectionMetadata().supertypes(Base) == []

    def test_supertypes_skip_protocol_machinery(self):
        class Proto(Protocol):
            def run(self) -> None: ...

        class Impl(Proto):
            def run(self) -> None: ...

        assert ReflectionMetadata().supertypes(Impl) == [Proto]

    def test_constructor_params(self):
        class Target:
            def __init__(self, dep: Dependency, untyped, /, port: int = 80, *args, flag: bool = False, **kwargs):
                pass

        params = ReflectionMetadata().constructor_params(Target)

        assert [p.name for p in params] == ["dep", "untyped", "port", "args", "flag", "kwargs"]
        assert [p.position for p in params] == [1, 2, 3, 4, 5, 6]

        dep, untyped, port, args, flag, kwargs = params
        assert dep.annotation is Dependency
        assert not dep.optional
        assert dep.kind is inspect.Parameter.POSITIONAL_ONLY

        assert untyped.annotation is None
        assert not untyped.optional

        assert port.annotation is int
        assert port.optional
        assert port.default == 80

        assert args.variadic and args.optional
        assert flag.kind is inspect.Parameter.KEYWORD_ONLY
        assert flag.default is False
        assert kwargs.variadic and kwargs.optional

    def test_constructor_params_without_init(self):
        class Plain: ...

        assert ReflectionMetadata().constructor_params(Plain) == []

    def test_unresolvable_annotation_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="servicemanager"):
            params = ReflectionMetadata().constructor_params(Unresolvable)

        assert params[0].annotation == "MissingType"
        assert "MissingType" in caplog.text


class CountingMetadata(ReflectionMetadata):
    def __init__(self) -> None:
        super().__init__()
        self.inspected: list[type] = []

    def constructor_params(self, cls):
        self.inspected.append(cls)
        return super().constructor_params(cls)


def test_manager_uses_given_metadata_provider():
    meta = CountingMetadata()
    m = ServiceManager(metadata=meta)

    class Service:
        def __init__(self, dep: Dependency):
            self.dep = dep

    m.resolve(Service)
    m.resolve(Service)
    m.resolve(Dependency)

    assert meta.inspected == [Service, Dependency]


def test_unresolvable_annotation_is_not_injectable():
    with pytest.raises(ParamTypeError):
        ServiceManager().resolve(Unresolvable)


def test_resolve_logs_instantiation(caplog):
    m = ServiceManager()

    with caplog.at_level(logging.DEBUG, logger="servicemanager"):
        m.resolve(Dependency)

    assert f"Instantiating {__name__}.Dependency" in caplog.text


def test_concurrent_resolution_builds_one_instance():
    m = ServiceManager()

    class Slow:
        built = 0

        def __init__(self, dep: Dependency):
            Slow.built += 1
            self.dep = dep

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: m.resolve(Slow), range(32)))

    assert all(r is results[0] for r in results)
    assert Slow.built == 1
