"""Error taxonomy for gene module discovery.

Every error raised by the module discovery stage derives from
ModuleDiscoveryError and records the pipeline stage that failed together
with the offending values, so a run aborts with a diagnostic that says
where and why.
"""

from typing import Any, Dict, Optional


class ModuleDiscoveryError(ValueError):
    """Base class for unrecoverable module discovery failures.

    Parameters
    ----------
    message : str
        Human-readable description of the failure
    stage : str, optional
        Pipeline stage that raised the error (e.g. "detection_filter")
    **details
        Offending values, kept on the instance for programmatic access
    """

    def __init__(self, message: str, *, stage: Optional[str] = None, **details: Any):
        self.stage = stage
        self.details: Dict[str, Any] = dict(details)
        prefix = f"[{stage}] " if stage else ""
        super().__init__(f"{prefix}{message}")


class EmptyInputError(ModuleDiscoveryError):
    """No genes or cells left to work on."""


class InsufficientDiversityError(ModuleDiscoveryError):
    """Fewer than two distinct reduced vectors; embedding is undefined."""


class DuplicateInputError(ModuleDiscoveryError):
    """Duplicate rows reached the embedder."""


class ConfigurationError(ModuleDiscoveryError):
    """Invalid parameter or input combination."""
