"""Error types shared across KubeKit commands and services."""

from collections.abc import Iterable


class KubeKitError(Exception):
    """Base exception for KubeKit errors."""

    def __init__(self, code: str, message: str, suggestion: str | None = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)


class UsageError(KubeKitError):
    """Raised when the command line does not describe a valid request."""

    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(code="USAGE_ERROR", message=message, suggestion=suggestion)


class ResourceError(KubeKitError):
    """An error attributed to a single named resource."""

    def __init__(self, resource: str, name: str, cause: Exception | str, code: str = "RESOURCE_ERROR"):
        self.resource = resource
        self.name = name
        self.cause = cause
        super().__init__(code=code, message=f'{resource} "{name}": {cause}')


class AggregateError(Exception):
    """An ordered collection of errors reported together.

    Aggregates may contain other aggregates; call flatten() before surfacing
    one so the user sees a single flat list.
    """

    def __init__(self, errors: Iterable[Exception]):
        self.errors = [e for e in errors if e is not None]
        super().__init__(str(self))

    def __str__(self) -> str:
        if len(self.errors) == 1:
            return str(self.errors[0])
        return "[" + ", ".join(str(e) for e in self.errors) + "]"

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)

    def flatten(self) -> "AggregateError":
        """Return a new aggregate with nested aggregates spliced in place."""
        flat: list[Exception] = []
        for err in self.errors:
            if isinstance(err, AggregateError):
                flat.extend(err.flatten().errors)
            else:
                flat.append(err)
        return AggregateError(flat)


def new_aggregate(errors: Iterable[Exception | None]) -> AggregateError | None:
    """Build an aggregate from a list of errors.

    Returns None when the list holds no errors, so an empty aggregate is
    never mistaken for a failure.
    """
    collected = [e for e in errors if e is not None]
    if not collected:
        return None
    return AggregateError(collected)


def flatten(err: Exception | None) -> Exception | None:
    """Flatten an aggregate, dropping it entirely when nothing is left."""
    if isinstance(err, AggregateError):
        return new_aggregate(err.flatten().errors)
    return err
