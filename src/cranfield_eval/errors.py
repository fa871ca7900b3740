"""Error types raised by the Cranfield evaluation pipeline."""


class CranevalError(Exception):
  """Base class for pipeline errors."""


class FormatError(CranevalError):
  """Malformed corpus, query, or relevance record."""


class IndexBuildError(CranevalError):
  """Index could not be built (empty input or unwritable storage)."""


class QuerySyntaxError(CranevalError):
  """Query string is not valid under the engine's query grammar."""


class EvaluatorError(CranevalError):
  """External evaluator failed to launch, timed out, or exited non-zero."""


class AggregationError(CranevalError):
  """Report directory could not be read."""
