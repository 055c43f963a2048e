class ValidationError(ValueError):
    """Raised when an attempt cannot be sent to the evaluator (empty sentence or translation)."""
