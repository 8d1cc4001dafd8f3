from __future__ import annotations


class AppError(Exception):
  """Base for failures that map onto an HTTP status and an ``{"error": ...}`` body."""

  status_code = 500

  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message


class AuthenticationError(AppError):
  status_code = 401


class BadRequestError(AppError):
  status_code = 400


class NotFoundError(AppError):
  # Also raised when the entity exists but belongs to someone else.
  status_code = 404


class GenerationError(AppError):
  status_code = 500


class ExtractionError(GenerationError):
  pass


class ParseError(GenerationError):
  pass


class NoValidItemsError(GenerationError):
  pass


class PersistError(AppError):
  status_code = 500
