"""craneval command-line interface.

Supports the configuration sweep, summary aggregation, and ad-hoc search.
"""

import argparse
import os
import shlex
import sys

from tabulate import tabulate

from .config import Config, load_config
from .data import Boosts, ScoringVariant, TokenizerVariant
from .engine import LexicalEngine, sanitize_query
from .errors import AggregationError, IndexBuildError, QuerySyntaxError
from .harness import DEFAULT_BOOSTS, ExperimentRunner, SweepConfig
from .parser import parse_corpus, parse_queries, read_text
from .report import aggregate, format_table, render_summary, write_summary_csv
from .writer import write_results

SUMMARY_NAME = 'trec_eval_summary.csv'


def _parse_choices(value: str | None, enum_cls, default: tuple) -> tuple:
  """Parse a comma-separated list of enum labels or member names."""
  if not value:
    return default
  out = []
  for raw in value.split(','):
    token = raw.strip()
    if not token:
      continue
    match = next(
      (
        m
        for m in enum_cls
        if token.lower() in (m.value.lower(), m.name.lower())
      ),
      None,
    )
    if match is None:
      allowed = ', '.join(m.value for m in enum_cls)
      raise SystemExit(f'Unknown choice {token!r}; expected one of: {allowed}')
    out.append(match)
  if not out:
    raise SystemExit(f'No {enum_cls.__name__} choices given in {value!r}')
  return tuple(out)


def _positive_int(value: str) -> int:
  """argparse type for counts that must be at least 1."""
  n = int(value)
  if n < 1:
    raise argparse.ArgumentTypeError(f'must be >= 1, got {n}')
  return n


def _parse_boosts(value: str | None) -> tuple[tuple[float, float], ...]:
  """Parse boost pairs like '1:1,2:1,1:2'."""
  if not value:
    return DEFAULT_BOOSTS
  pairs = []
  for raw in value.split(','):
    title, _, body = raw.strip().partition(':')
    pairs.append((float(title), float(body or 1.0)))
  return tuple(pairs)


def _sweep_config(args: argparse.Namespace, cfg: Config) -> SweepConfig:
  """Apply CLI flags over environment defaults."""
  return SweepConfig(
    corpus_path=args.corpus or cfg.corpus_path,
    queries_path=args.queries or cfg.queries_path,
    qrels_path=args.qrels or cfg.qrels_path,
    index_root=args.index_root or cfg.index_root,
    out_dir=args.out or cfg.output_root,
    evaluator=(
      tuple(shlex.split(args.trec_eval)) if args.trec_eval else cfg.trec_eval
    ),
    top_k=args.top_k if args.top_k is not None else cfg.top_k,
    eval_timeout=args.timeout if args.timeout is not None else cfg.eval_timeout,
    run_tag=cfg.run_tag,
    tokenizers=_parse_choices(
      args.tokenizers, TokenizerVariant, tuple(TokenizerVariant)
    ),
    scorings=_parse_choices(args.scorings, ScoringVariant, tuple(ScoringVariant)),
    boosts=_parse_boosts(args.boosts),
    max_workers=args.workers,
    strict=args.strict,
    verbose=not args.quiet,
  )


def _write_summary(report_dir: str, out_dir: str, reduced: bool) -> int:
  """Aggregate reports, write CSV + Markdown + chart, print the top rows."""
  try:
    rows = aggregate(
      report_dir, on_issue=lambda m: print(f'warning: {m}', file=sys.stderr)
    )
  except AggregationError as e:
    print(f'error: {e}', file=sys.stderr)
    return 1
  os.makedirs(out_dir, exist_ok=True)
  csv_path = os.path.join(out_dir, SUMMARY_NAME)
  write_summary_csv(rows, csv_path, reduced=reduced)
  render_summary(rows, out_dir, reduced=reduced)
  if rows:
    print(format_table(rows, reduced=reduced, limit=10))
  print(f'Wrote {csv_path} ({len(rows)} configurations)')
  return 0


def _run_sweep(args: argparse.Namespace) -> SweepConfig:
  """Run the sweep and print a one-line status per failed configuration."""
  cfg = _sweep_config(args, load_config())
  outcomes = ExperimentRunner(cfg).run()
  failed = [o for o in outcomes if o.status != 'ok']
  print(
    f'{len(outcomes) - len(failed)}/{len(outcomes)} configurations evaluated; '
    f'reports under {cfg.reports_dir}'
  )
  for o in failed:
    print(f'  {o.configuration.combo_id}: {o.status} ({o.error})')
  return cfg


def cmd_sweep(args: argparse.Namespace) -> int:
  """CLI: run every configuration of the sweep."""
  _run_sweep(args)
  return 0


def cmd_aggregate(args: argparse.Namespace) -> int:
  """CLI: build the summary from an existing report directory."""
  cfg = load_config()
  out_dir = args.out or cfg.output_root
  report_dir = args.in_dir or os.path.join(out_dir, 'trec_eval')
  return _write_summary(report_dir, out_dir, args.reduced)


def cmd_all(args: argparse.Namespace) -> int:
  """CLI: sweep, then aggregate."""
  cfg = _run_sweep(args)
  return _write_summary(str(cfg.reports_dir), cfg.out_dir, args.reduced)


def cmd_search(args: argparse.Namespace) -> int:
  """CLI: build one index and run a single query against it."""
  cfg = load_config()
  tokenizer = _parse_choices(
    args.tokenizer, TokenizerVariant, (TokenizerVariant.ENGLISH,)
  )[0]
  scoring = _parse_choices(args.scoring, ScoringVariant, (ScoringVariant.BM25,))[0]
  boosts = Boosts(title=args.title_boost, body=args.body_boost)
  corpus_path = args.corpus or cfg.corpus_path

  records = parse_corpus(
    read_text(corpus_path),
    on_issue=lambda m: print(f'warning: {m}', file=sys.stderr),
  )
  print(f'Parsed documents: {len(records)}')
  engine = LexicalEngine()
  index_dir = os.path.join(args.index_root or cfg.index_root, 'index')
  try:
    index = engine.build(records, tokenizer, index_dir)
  except IndexBuildError as e:
    print(f'error: {e}', file=sys.stderr)
    return 1
  print(f'Index built at: {os.path.abspath(index_dir)} ({tokenizer.value})')

  filters = {'author': args.author or '', 'title': args.title or ''}
  try:
    hits = engine.search(
      index,
      scoring,
      sanitize_query(args.query),
      boosts,
      filters=filters,
      top_k=10,
    )
  except QuerySyntaxError as e:
    print(f'Failed to parse query: {e}', file=sys.stderr)
    return 1

  by_id = {r.id: r for r in records}
  table = []
  for rank, (doc_id, score) in enumerate(hits, 1):
    doc = by_id[doc_id]
    snippet = doc.body if len(doc.body) <= 200 else doc.body[:200] + '...'
    table.append([rank, doc_id, f'{score:.4f}', doc.title, snippet])
  print(f'Total hits: {len(hits)}')
  if table:
    print(
      tabulate(
        table,
        headers=['#', 'id', 'score', 'title', 'snippet'],
        tablefmt='github',
        maxcolwidths=[None, None, None, 40, 60],
      )
    )

  if args.write_run:
    queries_path = args.queries or cfg.queries_path
    queries = parse_queries(read_text(queries_path), tokenizer)
    out_dir = os.path.join(args.out or cfg.output_root, 'interactive')
    os.makedirs(out_dir, exist_ok=True)
    results_path = os.path.join(out_dir, 'results.txt')
    lines = write_results(
      queries,
      lambda q, b, k: engine.search(index, scoring, q, b, top_k=k),
      results_path,
      cfg.top_k,
      boosts,
      run_tag=cfg.run_tag,
      on_error=lambda q, e: print(f'query {q.id}: {e}', file=sys.stderr),
    )
    print(f'Wrote {lines} result lines to {results_path}')
  return 0


def _add_paths(p: argparse.ArgumentParser) -> None:
  p.add_argument('--corpus', type=str, default=None, help='Corpus file')
  p.add_argument('--queries', type=str, default=None, help='Query file')
  p.add_argument('--index-root', type=str, default=None, help='Index root dir')
  p.add_argument('--out', type=str, default=None, help='Output directory')


def _add_sweep_options(p: argparse.ArgumentParser) -> None:
  _add_paths(p)
  p.add_argument('--qrels', type=str, default=None, help='Relevance judgments')
  p.add_argument(
    '--trec-eval', type=str, default=None, help='Evaluator command'
  )
  p.add_argument(
    '--top-k', type=_positive_int, default=None, help='Hits per query'
  )
  p.add_argument(
    '--timeout', type=float, default=None, help='Evaluator timeout (seconds)'
  )
  p.add_argument(
    '--tokenizers',
    type=str,
    default=None,
    help='Comma-separated tokenizer variants (default: all)',
  )
  p.add_argument(
    '--scorings',
    type=str,
    default=None,
    help='Comma-separated scoring variants (default: all)',
  )
  p.add_argument(
    '--boosts',
    type=str,
    default=None,
    help="Title:body boost pairs, e.g. '1:1,2:1,1:2'",
  )
  p.add_argument(
    '--workers',
    type=_positive_int,
    default=1,
    help='Configurations run concurrently',
  )
  p.add_argument(
    '--strict', action='store_true', help='Reject malformed corpus records'
  )
  p.add_argument('--quiet', action='store_true', help='Disable event logs')


def main() -> None:
  """Entry point for craneval CLI."""
  ap = argparse.ArgumentParser(
    prog='craneval', description='Cranfield retrieval configuration sweeps'
  )
  sub = ap.add_subparsers(dest='cmd', required=True)

  s = sub.add_parser('sweep', help='Run all configurations')
  _add_sweep_options(s)
  s.set_defaults(func=cmd_sweep)

  ag = sub.add_parser('aggregate', help='Summarize trec_eval reports')
  ag.add_argument(
    '--in',
    dest='in_dir',
    type=str,
    default=None,
    help='Report directory (defaults to <out>/trec_eval)',
  )
  ag.add_argument('--out', type=str, default=None, help='Output directory')
  ag.add_argument(
    '--reduced', action='store_true', help='Six-metric summary without recall'
  )
  ag.set_defaults(func=cmd_aggregate)

  al = sub.add_parser('all', help='End-to-end: sweep -> aggregate')
  _add_sweep_options(al)
  al.add_argument(
    '--reduced', action='store_true', help='Six-metric summary without recall'
  )
  al.set_defaults(func=cmd_all)

  se = sub.add_parser('search', help='Run one query against a fresh index')
  se.add_argument('query', type=str, help='Query text')
  _add_paths(se)
  se.add_argument('--tokenizer', type=str, default=None, help='Tokenizer variant')
  se.add_argument('--scoring', type=str, default=None, help='Scoring variant')
  se.add_argument('--title-boost', type=float, default=2.0, help='Title boost')
  se.add_argument('--body-boost', type=float, default=1.0, help='Body boost')
  se.add_argument('--author', type=str, default=None, help='Author term filter')
  se.add_argument('--title', type=str, default=None, help='Title term filter')
  se.add_argument(
    '--write-run',
    action='store_true',
    help='Also write results for the whole query set',
  )
  se.set_defaults(func=cmd_search)

  args = ap.parse_args()
  sys.exit(args.func(args))
