"""
Exception and warning types raised by mlpredict.

Fatal conditions derive from :class:`MLPredictError`. Recoverable conditions
are :class:`UserWarning` subclasses emitted through :mod:`warnings` so that
callers can escalate them with a warnings filter.
"""

from typing import List, Optional, Sequence, Tuple


class MLPredictError(Exception):
    """Base exception for mlpredict."""
    pass


class ArtifactError(MLPredictError):
    """Base exception for artifact directory problems."""
    pass


class ArtifactNotFoundError(ArtifactError):
    """A required artifact file kind is missing from the bundle directory."""

    def __init__(self, kind: str, directory: str, pattern: Optional[str] = None):
        self.kind = kind
        self.directory = directory
        self.pattern = pattern
        detail = f" (expected '{pattern}')" if pattern else ""
        super().__init__(f"Missing {kind} in {directory}{detail}")


class AmbiguousArtifactError(ArtifactError):
    """More than one file of a single artifact kind was found."""

    def __init__(self, kind: str, directory: str, candidates: Sequence[str]):
        self.kind = kind
        self.directory = directory
        self.candidates = list(candidates)
        super().__init__(
            f"Found {len(self.candidates)} files for {kind} in {directory}: "
            f"{', '.join(self.candidates)}"
        )


class ManifestError(MLPredictError):
    """The manifest file could not be parsed or has the wrong shape."""
    pass


class DependencyResolutionError(MLPredictError):
    """Raised under the strict dependency policy when a package is unavailable."""

    def __init__(self, failures):
        self.failures = list(failures)
        names = ", ".join(f"{f.package_id}=={f.version}" for f in self.failures)
        super().__init__(f"Could not resolve dependencies: {names}")


class PackageFetchError(MLPredictError):
    """A package fetcher could not provide the requested package."""
    pass


class DependencyFetchWarning(UserWarning):
    """A declared dependency could not be fetched and was skipped."""
    pass


class CompilationError(MLPredictError):
    """The descriptor source failed to compile or execute.

    Attributes:
        diagnostics: Every diagnostic collected for the unit, errors and warnings.
    """

    def __init__(self, diagnostics):
        self.diagnostics = list(diagnostics)
        errors = [d for d in self.diagnostics if d.severity == "error"]
        lines = "\n".join(f"  {d}" for d in errors)
        super().__init__(f"Compilation failed with {len(errors)} error(s):\n{lines}")

    @property
    def errors(self):
        return [d for d in self.diagnostics if d.severity == "error"]


class EntrySymbolNotFoundError(MLPredictError):
    """The candidate entry symbol does not exist in the compiled unit."""
    pass


class IntrospectionError(MLPredictError):
    """The candidate entry symbol exposes no usable prediction capability."""
    pass


class ModelInvocationError(MLPredictError):
    """Calling the model's prediction method raised."""
    pass


class RecordCoercionWarning(UserWarning):
    """A cell could not be coerced to its field type; the zero value was used."""
    pass


class UnsupportedScenarioError(MLPredictError):
    """The manifest scenario tag has no registered handler."""

    def __init__(self, scenario: str, supported: Sequence[str] = ()):
        self.scenario = scenario
        self.supported = list(supported)
        message = f"Unsupported scenario: '{scenario}'"
        if self.supported:
            message += f". Supported scenarios: {', '.join(self.supported)}"
        super().__init__(message)


class InputDataError(MLPredictError):
    """The input dataset is missing, empty or unusable for the scenario."""
    pass


class PredictionDispatchError(MLPredictError):
    """Every entry-symbol candidate failed.

    Attributes:
        attempts: ``(candidate_name, reason)`` pairs in the order they were tried.
    """

    def __init__(self, scenario: str, attempts: List[Tuple[str, str]]):
        self.scenario = scenario
        self.attempts = list(attempts)
        tried = "\n".join(f"  - {name}: {reason}" for name, reason in self.attempts)
        super().__init__(
            f"No entry symbol could run scenario '{scenario}'. Tried:\n{tried}"
        )
