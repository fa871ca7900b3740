"""Configuration loader for Cranfield sweeps.

Reads environment variables (optionally from .env) and exposes a typed
config. Only the CLI calls `load_config`; the sweep itself receives an
explicit `SweepConfig`.
"""

import os
import shlex
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Config:
  """Holds file locations and defaults loaded from the environment."""

  corpus_path: str
  queries_path: str
  qrels_path: str
  index_root: str
  output_root: str
  trec_eval: tuple[str, ...]
  top_k: int
  eval_timeout: float | None
  run_tag: str


def _float_or_none(value: str | None) -> float | None:
  if value is None or not value.strip():
    return None
  return float(value)


def load_config() -> Config:
  """Load configuration from environment variables."""
  top_k = int(os.getenv('CRANEVAL_TOP_K', '100'))
  if top_k < 1:
    raise ValueError(f'CRANEVAL_TOP_K must be >= 1, got {top_k}')
  return Config(
    corpus_path=os.getenv('CRANEVAL_CORPUS', 'cran/cran.all.1400'),
    queries_path=os.getenv('CRANEVAL_QUERIES', 'cran/cran.qry'),
    qrels_path=os.getenv('CRANEVAL_QRELS', 'cran/cranqrel'),
    index_root=os.getenv('CRANEVAL_INDEX_ROOT', 'index'),
    output_root=os.getenv('CRANEVAL_OUTPUT_ROOT', 'output'),
    trec_eval=tuple(shlex.split(os.getenv('TREC_EVAL_BIN', 'trec_eval'))),
    top_k=top_k,
    eval_timeout=_float_or_none(os.getenv('CRANEVAL_EVAL_TIMEOUT')),
    run_tag=os.getenv('CRANEVAL_RUN_TAG', 'cranLucene'),
  )
