"""Runs the external relevance-evaluation tool (trec_eval) as a subprocess."""

import subprocess
from collections.abc import Sequence
from pathlib import Path

from .errors import EvaluatorError


def _discard(path: Path) -> None:
  """Drop a report left by an earlier run so a failure leaves no stale data."""
  path.unlink(missing_ok=True)


def run_evaluator(
  command: Sequence[str],
  qrels_path: str | Path,
  results_path: str | Path,
  report_path: str | Path,
  timeout: float | None = None,
) -> Path:
  """Invoke `<command> <qrels> <results>` and save its stdout verbatim.

  `subprocess.run` waits for the child and drains both pipes on every exit
  path, killing it first on timeout.

  Raises:
    EvaluatorError: launch failure, timeout, or non-zero exit status.
  """
  report_path = Path(report_path)
  argv = [*command, str(qrels_path), str(results_path)]
  try:
    proc = subprocess.run(
      argv,
      capture_output=True,
      text=True,
      encoding='utf-8',
      errors='replace',
      timeout=timeout,
      check=False,
    )
  except subprocess.TimeoutExpired as e:
    _discard(report_path)
    raise EvaluatorError(f'{argv[0]} timed out after {e.timeout}s') from e
  except OSError as e:
    _discard(report_path)
    raise EvaluatorError(f'cannot launch {argv[0]}: {e}') from e

  if proc.returncode != 0:
    _discard(report_path)
    detail = (proc.stderr or '').strip().splitlines()
    reason = detail[-1] if detail else 'no stderr'
    raise EvaluatorError(f'{argv[0]} exited with {proc.returncode}: {reason}')

  with open(report_path, 'w', encoding='utf-8') as f:
    f.write(proc.stdout)
  return report_path
