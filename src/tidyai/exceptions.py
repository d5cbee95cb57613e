"""Custom exceptions for the Tidy AI organizer."""


class TidyAIError(Exception):
    """Base exception for all Tidy AI errors."""

    pass


class ConfigurationError(TidyAIError):
    """Exception raised when settings or preferences cannot be loaded."""

    def __init__(self, message: str, path: str = None):
        """
        Initialize configuration error.

        Args:
            message: Error message
            path: Optional path of the offending config file
        """
        super().__init__(message)
        self.path = path


class ClassificationError(TidyAIError):
    """Exception raised when the external classifier cannot produce a result."""

    def __init__(self, message: str, provider: str = None, attempts: int = 0):
        """
        Initialize classification error.

        Args:
            message: Error message
            provider: Classifier provider name (ollama, openai)
            attempts: Number of attempts made before giving up
        """
        super().__init__(message)
        self.provider = provider
        self.attempts = attempts


class PlanSafetyError(TidyAIError):
    """Exception raised when a plan that failed its safety check is executed."""

    def __init__(self, message: str, plan_id: str = None, errors: list = None):
        super().__init__(message)
        self.plan_id = plan_id
        self.errors = errors or []


class CollisionError(TidyAIError):
    """Exception raised when no free destination can be found for a path."""

    def __init__(self, message: str, path: str = None):
        super().__init__(message)
        self.path = path


class ArtifactError(TidyAIError):
    """Exception raised when a persisted artifact is missing or corrupt."""

    pass
