"""
In-memory compilation of descriptor sources.

The descriptor is parsed, compiled with release optimization and executed
into a fresh module object that is registered in ``sys.modules`` under a
unique name. Nothing is written to disk. Every type defined by the
descriptor is described by a :class:`TypeDescriptor` so that entry-symbol
resolution can work on plain data instead of live objects.
"""

import ast
import importlib
import inspect
import os
import re
import sys
import sysconfig
import traceback
import types
import uuid
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from mlpredict.core.logging import get_logger
from mlpredict.errors import CompilationError
from mlpredict.runtime.dependencies import NATIVE_SUFFIXES

logger = get_logger(__name__)

UNIT_MODULE_PREFIX = "_mlpredict_unit_"


@dataclass(frozen=True)
class Diagnostic:
    """A compiler message.

    Attributes:
        severity: ``"error"`` or ``"warning"``.
        code: Short identifier such as ``"SyntaxError"``.
        message: Human-readable text.
        line: 1-based line in the descriptor source, when known.
    """
    severity: str
    code: str
    message: str
    line: Optional[int] = None

    def __str__(self) -> str:
        where = f" at line {self.line}" if self.line is not None else ""
        return f"{self.code}: {self.message}{where}"


@dataclass(frozen=True)
class TypeDescriptor:
    """Static description of a type defined by the descriptor.

    Attributes:
        name: Simple class name.
        qualname: Qualified name, ``Outer.Inner`` for nested types.
        is_nested: Defined inside another class.
        method_names: Public callables reachable on the class.
        obj: The class object itself.
    """
    name: str
    qualname: str
    is_nested: bool
    method_names: Tuple[str, ...]
    obj: Any = field(compare=False, repr=False)

    def has_method(self, name: str) -> bool:
        return name in self.method_names


@dataclass(frozen=True)
class CompiledUnit:
    """Loaded descriptor module plus the types it defines.

    Read-only after creation; shared between introspection calls but never
    mutated.
    """
    module_name: str
    module: types.ModuleType = field(compare=False, repr=False)
    source: str = field(compare=False, repr=False)
    filename: str
    types: Tuple[TypeDescriptor, ...] = ()
    warnings: Tuple[Diagnostic, ...] = ()

    @property
    def exported_type_names(self) -> List[str]:
        """Names of every public type, in definition order."""
        return [t.name for t in self.types]

    def get_type(self, name: str) -> Optional[TypeDescriptor]:
        """Find a type by qualified name, then by simple name preferring top-level types."""
        for descriptor in self.types:
            if descriptor.qualname == name:
                return descriptor
        matches = [t for t in self.types if t.name == name]
        matches.sort(key=lambda t: t.is_nested)
        return matches[0] if matches else None


def describe_types(module: types.ModuleType) -> Tuple[TypeDescriptor, ...]:
    """Enumerate public classes defined in ``module``, including nested ones."""
    found: List[TypeDescriptor] = []

    def visit(cls: type, nested: bool) -> None:
        found.append(TypeDescriptor(
            name=cls.__name__,
            qualname=cls.__qualname__,
            is_nested=nested,
            method_names=_method_names(cls),
            obj=cls,
        ))
        for attr, value in vars(cls).items():
            if (
                inspect.isclass(value)
                and not attr.startswith("_")
                and value.__module__ == module.__name__
                and value.__qualname__ == f"{cls.__qualname__}.{value.__name__}"
            ):
                visit(value, True)

    for attr, value in vars(module).items():
        if (
            inspect.isclass(value)
            and not attr.startswith("_")
            and value.__module__ == module.__name__
            and "." not in value.__qualname__
        ):
            visit(value, False)
    return tuple(found)


def _method_names(cls: type) -> Tuple[str, ...]:
    names = []
    for name in dir(cls):
        if name.startswith("_"):
            continue
        try:
            value = inspect.getattr_static(cls, name)
        except AttributeError:
            continue
        if isinstance(value, (staticmethod, classmethod)) or inspect.isfunction(value):
            names.append(name)
    return tuple(names)


def baseline_search_paths() -> List[Path]:
    """Interpreter library directories every descriptor can rely on."""
    paths = sysconfig.get_paths()
    ordered = []
    for key in ("stdlib", "platstdlib", "purelib", "platlib"):
        value = paths.get(key)
        if value and Path(value) not in ordered:
            ordered.append(Path(value))
    return ordered


def program_search_paths() -> List[Path]:
    """Directory of the running program, for libraries shipped beside it."""
    program = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if program is not None and program.is_file():
        return [program.resolve().parent]
    return []


class UnitCompiler:
    """Compile descriptor sources into in-memory modules.

    Attributes:
        optimize: Optimization level given to :func:`compile`. Level 1 strips
            ``assert`` statements and ``__debug__`` blocks.
        extra_search_paths: Additional import roots.
        search_paths: Import roots this compiler has added to ``sys.path``.
    """

    def __init__(self, optimize: int = 1, extra_search_paths: Sequence[str] = ()):
        self.optimize = optimize
        self.extra_search_paths = [Path(p) for p in extra_search_paths]
        self.search_paths: List[Path] = []
        self._dll_handles: List[Any] = []

    def compile(
        self,
        source: str,
        binaries: Iterable[Path] = (),
        filename: str = "<descriptor>",
    ) -> CompiledUnit:
        """Compile and load a descriptor.

        Args:
            source: Descriptor source text.
            binaries: Import roots and native libraries surfaced by dependency
                resolution.
            filename: Name reported in diagnostics and tracebacks.

        Returns:
            CompiledUnit for the loaded module.

        Raises:
            CompilationError: On a syntax error or an exception while executing
                the module body. Lists every error with its line number.
        """
        self._extend_search_paths(binaries)
        diagnostics: List[Diagnostic] = []

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                tree = ast.parse(source, filename=filename)
                code = compile(tree, filename, "exec", optimize=self.optimize)
            except SyntaxError as e:
                diagnostics.extend(self._warning_diagnostics(caught))
                diagnostics.append(Diagnostic("error", type(e).__name__, e.msg, e.lineno))
                raise CompilationError(diagnostics) from e
        diagnostics.extend(self._warning_diagnostics(caught))

        module_name = f"{UNIT_MODULE_PREFIX}{_slug(Path(filename).name)}_{uuid.uuid4().hex[:8]}"
        module = types.ModuleType(module_name)
        module.__file__ = filename
        sys.modules[module_name] = module
        try:
            exec(code, module.__dict__)
        except Exception as e:
            sys.modules.pop(module_name, None)
            diagnostics.append(Diagnostic(
                "error", type(e).__name__, str(e) or repr(e), _failing_line(e, filename)
            ))
            raise CompilationError(diagnostics) from e

        unit = CompiledUnit(
            module_name=module_name,
            module=module,
            source=source,
            filename=filename,
            types=describe_types(module),
            warnings=tuple(diagnostics),
        )
        for diagnostic in unit.warnings:
            logger.debug(f"{Path(filename).name}: {diagnostic}")
        logger.debug(
            f"Compiled {Path(filename).name} as {module_name}: "
            + ", ".join(f"{t.qualname}({', '.join(t.method_names)})" for t in unit.types)
        )
        return unit

    def _extend_search_paths(self, binaries: Iterable[Path]) -> None:
        roots: List[Path] = baseline_search_paths()
        native_dirs: List[Path] = []
        for path in binaries:
            path = Path(path)
            if path.is_dir():
                roots.append(path)
            elif path.suffix in NATIVE_SUFFIXES:
                roots.append(path.parent)
                native_dirs.append(path.parent)
        roots.extend(program_search_paths())
        roots.extend(self.extra_search_paths)

        added = False
        for root in roots:
            entry = str(root)
            if root.is_dir() and entry not in sys.path:
                sys.path.append(entry)
                self.search_paths.append(root)
                added = True
        if added:
            importlib.invalidate_caches()

        if hasattr(os, "add_dll_directory"):
            for directory in dict.fromkeys(native_dirs):
                self._dll_handles.append(os.add_dll_directory(str(directory)))

    @staticmethod
    def _warning_diagnostics(caught: Sequence[warnings.WarningMessage]) -> List[Diagnostic]:
        return [
            Diagnostic("warning", w.category.__name__, str(w.message), w.lineno)
            for w in caught
        ]


def _slug(name: str) -> str:
    return re.sub(r"\W+", "_", name.split(".")[0]) or "unit"


def _failing_line(error: BaseException, filename: str) -> Optional[int]:
    frames = [f for f in traceback.extract_tb(error.__traceback__) if f.filename == filename]
    return frames[-1].lineno if frames else None
