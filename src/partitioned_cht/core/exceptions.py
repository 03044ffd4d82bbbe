"""
Exception hierarchy for partitioned CHT runs.

Configuration, activation, solver and checkpoint errors are fatal and unwind to
the runner. Diagnostics errors never leave the reporter that raised them.
"""


class CouplingError(RuntimeError):
    """Base class for all coupling errors."""


class ConfigurationError(CouplingError, ValueError):
    """Invalid configuration or an engine object that cannot be resolved.

    Raised before the main loop starts; no partial run is attempted.
    """


class ActivationError(CouplingError):
    """The engine's domain activation does not match the requested phase."""


class SolverInvocationError(CouplingError):
    """A blocking solver run failed or left physical time in an invalid state."""


class CheckpointError(CouplingError):
    """A state snapshot could not be written."""


class DiagnosticsError(CouplingError):
    """Failure inside an optional diagnostics hook."""
