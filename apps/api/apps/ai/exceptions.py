class AIServiceError(Exception):
    """The AI provider failed or replied with something we cannot use."""

    def __init__(self, message, action=None):
        super().__init__(message)
        self.action = action
