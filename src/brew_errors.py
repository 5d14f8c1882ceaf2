"""
src/brew_errors.py
Exceptions raised to callers of the water volume engine.
"""


class BrewCalculationError(Exception):
    """Base class. `user_message` is safe to show; `details` carries debug context."""

    default_user_message = "An error occurred in the brewing calculation."
    default_recoverable = False

    def __init__(self, message, user_message=None, details=None, recoverable=None):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message
        self.details = details or {}
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def to_dict(self):
        return {
            "error": type(self).__name__,
            "message": str(self),
            "user_message": self.user_message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ValidationError(BrewCalculationError):
    default_user_message = "Invalid input data detected."
    default_recoverable = True


class RecipeStructureError(ValidationError):
    """Required top-level recipe data is missing or impossible (batch size, collections)."""
    default_user_message = "Recipe is missing data required for water calculations."


class CalculationError(BrewCalculationError):
    default_user_message = "Unable to calculate water volumes for this recipe. Please check the recipe data."
    default_recoverable = True
