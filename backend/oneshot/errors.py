"""Exception hierarchy shared by the pipeline, the providers and the API."""

from typing import Optional


class OneshotError(Exception):
    """Base class for all errors raised by oneshot."""


class ConfigurationError(OneshotError):
    """A required setting (e.g. an API key) is missing."""


class InvalidStepError(OneshotError):
    """Step number outside 1-6, or step 1 requested without a description."""


class MissingArtifactError(OneshotError):
    """An upstream artifact a step needs is absent from the project directory."""

    def __init__(self, filename: str, producing_step: int):
        self.filename = filename
        self.producing_step = producing_step
        super().__init__(f"{filename} not found. Re-run step {producing_step}.")


class ScriptValidationError(OneshotError):
    """Generated script could not be parsed or violates the script shape."""


class StepConflictError(OneshotError):
    """A step is already running for the project."""

    def __init__(self, project_id: str, running_step: int):
        self.project_id = project_id
        self.running_step = running_step
        super().__init__(f"Step {running_step} is already running for this project")


class ProviderError(OneshotError):
    """Generation provider returned an error status or a failed task."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class VideoTimeoutError(ProviderError):
    """Video task did not reach a terminal status within the poll budget."""


class StitchError(OneshotError):
    """ffmpeg concatenation failed."""
