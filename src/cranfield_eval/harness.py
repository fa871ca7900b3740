"""Configuration sweep: parse once, then build, search, write and evaluate
every tokenizer x scoring x boost combination.

Failures are contained per configuration (and per query inside a
configuration); only unreadable inputs or uncreatable directories abort the
whole sweep.
"""

import itertools
import os
import threading
import time
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .data import (
  Configuration,
  CorpusRecord,
  QueryRecord,
  RelevanceJudgment,
  ScoringVariant,
  TokenizerVariant,
)
from .engine import DEFAULT_TOP_K, IndexEngine, LexicalEngine
from .errors import EvaluatorError, IndexBuildError
from .evaluator import run_evaluator
from .parser import load_qrels, parse_corpus, parse_queries, read_text
from .runlog import RunLogger
from .writer import DEFAULT_RUN_TAG, write_results

DEFAULT_BOOSTS: tuple[tuple[float, float], ...] = (
  (1.0, 1.0),
  (2.0, 1.0),
  (1.0, 2.0),
)

RESULTS_SUFFIX = '_results.txt'
REPORT_SUFFIX = '_trec.txt'


class Stage(str, Enum):
  """Furthest step a configuration reached."""

  IDLE = 'idle'
  BUILDING = 'building'
  SEARCHING = 'searching'  # search and result writing stream together
  EVALUATING = 'evaluating'
  DONE = 'done'


@dataclass
class SweepConfig:
  """Everything a sweep needs; defaults are applied by the caller."""

  corpus_path: str
  queries_path: str
  qrels_path: str
  index_root: str = 'index'
  out_dir: str = 'output'
  evaluator: tuple[str, ...] = ('trec_eval',)
  top_k: int = DEFAULT_TOP_K
  eval_timeout: float | None = None
  run_tag: str = DEFAULT_RUN_TAG
  tokenizers: tuple[TokenizerVariant, ...] = tuple(TokenizerVariant)
  scorings: tuple[ScoringVariant, ...] = tuple(ScoringVariant)
  boosts: tuple[tuple[float, float], ...] = DEFAULT_BOOSTS
  max_workers: int = 1
  strict: bool = False
  verbose: bool = True

  def __post_init__(self) -> None:
    if self.top_k < 1:
      raise ValueError(f'top_k must be >= 1, got {self.top_k}')
    if self.max_workers < 1:
      raise ValueError(f'max_workers must be >= 1, got {self.max_workers}')

  @property
  def results_dir(self) -> Path:
    return Path(self.out_dir) / 'results'

  @property
  def reports_dir(self) -> Path:
    return Path(self.out_dir) / 'trec_eval'


@dataclass(frozen=True)
class ArtifactPaths:
  index_dir: Path
  results: Path
  report: Path


@dataclass
class ComboOutcome:
  """What happened to one configuration."""

  configuration: Configuration
  stage: Stage = Stage.IDLE
  status: str = 'pending'  # ok | build_failed | eval_failed
  results_path: str | None = None
  report_path: str | None = None
  lines: int = 0
  failed_queries: int = 0
  error: str | None = None


def iter_configurations(cfg: SweepConfig) -> Iterator[Configuration]:
  """Cartesian product of the sweep axes, in declaration order.

  Repeated axis entries (e.g. boosts `1:1` and `1.0:1`) would map onto the
  same artifact paths, so each configuration is yielded once, at its first
  position.
  """
  seen: set[str] = set()
  for tokenizer, scoring, (title, body) in itertools.product(
    cfg.tokenizers, cfg.scorings, cfg.boosts
  ):
    combo = Configuration(
      tokenizer=tokenizer,
      scoring=scoring,
      title_boost=float(title),
      body_boost=float(body),
    )
    if combo.combo_id in seen:
      continue
    seen.add(combo.combo_id)
    yield combo


def artifact_paths(cfg: SweepConfig, combo: Configuration) -> ArtifactPaths:
  """All artifact locations of one configuration, derived from its id."""
  cid = combo.combo_id
  return ArtifactPaths(
    index_dir=Path(cfg.index_root) / f'index_{cid}',
    results=cfg.results_dir / f'{cid}{RESULTS_SUFFIX}',
    report=cfg.reports_dir / f'{cid}{REPORT_SUFFIX}',
  )


class ExperimentRunner:
  """Drives parser -> engine -> writer -> evaluator for every configuration."""

  def __init__(
    self,
    cfg: SweepConfig,
    engine: IndexEngine | None = None,
    logger: RunLogger | None = None,
  ) -> None:
    self.cfg = cfg
    self.engine = engine or LexicalEngine()
    self._logger = logger
    self._records: list[CorpusRecord] = []
    self._qrels: RelevanceJudgment = {}
    self._query_cache: dict[TokenizerVariant, list[QueryRecord]] = {}
    self._query_text = ''
    self._cache_lock = threading.Lock()

  @property
  def logger(self) -> RunLogger:
    if self._logger is None:
      self._logger = RunLogger(
        os.path.join(self.cfg.out_dir, 'sweep.log'), enabled=self.cfg.verbose
      )
    return self._logger

  def run(self) -> list[ComboOutcome]:
    """Run the whole sweep and return one outcome per configuration."""
    owns_logger = self._logger is None
    try:
      self._prepare()
      combos = list(iter_configurations(self.cfg))
      if self.cfg.max_workers > 1:
        with ThreadPoolExecutor(max_workers=self.cfg.max_workers) as pool:
          return list(pool.map(self._run_combo, combos))
      return [self._run_combo(c) for c in combos]
    finally:
      if owns_logger and self._logger is not None:
        self._logger.close()

  # ---------- Stages ----------

  def _prepare(self) -> None:
    """Parse the corpus, judgments and query text; create artifact dirs."""
    cfg = self.cfg
    for d in (Path(cfg.index_root), cfg.results_dir, cfg.reports_dir):
      d.mkdir(parents=True, exist_ok=True)

    self._records = parse_corpus(
      read_text(cfg.corpus_path),
      strict=cfg.strict,
      on_issue=lambda m: self.logger.issue('corpus', m),
    )
    self._query_text = read_text(cfg.queries_path)
    self._qrels = load_qrels(
      read_text(cfg.qrels_path),
      on_issue=lambda m: self.logger.issue('qrels', m),
    )
    query_ids = [
      q.id for t in cfg.tokenizers[:1] for q in self._queries_for(t)
    ]
    unjudged = [qid for qid in query_ids if qid not in self._qrels]
    self.logger.log(
      {
        'event': 'parse',
        'docs': len(self._records),
        'queries': len(query_ids),
        'judged_queries': len(self._qrels),
        'corpus': cfg.corpus_path,
      }
    )
    if unjudged:
      self.logger.issue(
        'qrels', f'{len(unjudged)} queries have no relevance judgments'
      )

  def _queries_for(self, tokenizer: TokenizerVariant) -> list[QueryRecord]:
    """Queries normalized for `tokenizer`, parsed once per variant."""
    with self._cache_lock:
      if tokenizer not in self._query_cache:
        self._query_cache[tokenizer] = parse_queries(
          self._query_text,
          tokenizer,
          on_issue=lambda m: self.logger.issue(
            'queries', m, tokenizer=tokenizer.value
          ),
        )
      return self._query_cache[tokenizer]

  def _run_combo(self, combo: Configuration) -> ComboOutcome:
    cfg = self.cfg
    cid = combo.combo_id
    paths = artifact_paths(cfg, combo)
    outcome = ComboOutcome(configuration=combo)
    self.logger.log({'event': 'combo_start', 'combo': cid})
    try:
      outcome.stage = Stage.BUILDING
      t0 = time.time()
      try:
        index = self.engine.build(self._records, combo.tokenizer, paths.index_dir)
      except IndexBuildError as e:
        self._discard(paths.results, paths.report)
        outcome.status, outcome.error = 'build_failed', str(e)
        self.logger.log({'event': 'build_error', 'combo': cid, 'error': str(e)})
        return self._finish(outcome)
      self.logger.log(
        {
          'event': 'index_built',
          'combo': cid,
          'docs': len(self._records),
          'elapsed_s': round(time.time() - t0, 3),
          'path': str(paths.index_dir),
        }
      )

      outcome.stage = Stage.SEARCHING
      queries = self._queries_for(combo.tokenizer)

      def search_fn(query, boosts, top_k):
        return self.engine.search(index, combo.scoring, query, boosts, top_k=top_k)

      def on_query_error(query: QueryRecord, exc: Exception) -> None:
        outcome.failed_queries += 1
        self.logger.log(
          {
            'event': 'query_error',
            'combo': cid,
            'query_id': query.id,
            'error': str(exc),
          }
        )

      outcome.lines = write_results(
        queries,
        search_fn,
        paths.results,
        cfg.top_k,
        combo.boosts,
        run_tag=cfg.run_tag,
        on_error=on_query_error,
      )
      outcome.results_path = str(paths.results)
      self.logger.log(
        {
          'event': 'results_written',
          'combo': cid,
          'lines': outcome.lines,
          'queries': len(queries),
          'path': str(paths.results),
        }
      )

      outcome.stage = Stage.EVALUATING
      try:
        run_evaluator(
          cfg.evaluator,
          cfg.qrels_path,
          paths.results,
          paths.report,
          timeout=cfg.eval_timeout,
        )
      except EvaluatorError as e:
        outcome.status, outcome.error = 'eval_failed', str(e)
        self.logger.log({'event': 'eval_error', 'combo': cid, 'error': str(e)})
        return self._finish(outcome)

      outcome.report_path = str(paths.report)
      outcome.stage, outcome.status = Stage.DONE, 'ok'
      self.logger.log({'event': 'eval_ok', 'combo': cid, 'path': str(paths.report)})
      return self._finish(outcome)
    except KeyboardInterrupt:
      self.logger.log({'event': 'interrupt', 'combo': cid})
      raise

  def _finish(self, outcome: ComboOutcome) -> ComboOutcome:
    self.logger.log(
      {
        'event': 'combo_done',
        'combo': outcome.configuration.combo_id,
        'status': outcome.status,
        'stage': outcome.stage.value,
        'lines': outcome.lines,
        'failed_queries': outcome.failed_queries,
      }
    )
    return outcome

  @staticmethod
  def _discard(*paths: Path) -> None:
    """Remove artifacts of an earlier run that this run could not replace."""
    for p in paths:
      p.unlink(missing_ok=True)
