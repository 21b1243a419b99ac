class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class TransformationNotFoundError(DomainError):
    """Raised when a transformation or pipeline id is not registered."""

    def __init__(self, transformation_id: str):
        self.transformation_id = transformation_id
        super().__init__(f"Unknown transformation: {transformation_id}")


class ProviderNotConfiguredError(DomainError):
    """Raised when an LLM transformation is requested without a usable provider."""

    pass
