"""Aggregation of trec_eval reports into a ranked comparison table.

Reads every report in a directory, extracts the requested `<metric> all
<value>` lines, derives recall, sorts by MAP and writes the summary CSV plus
a Markdown table and a MAP chart.
"""

import os
import re
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import pandas as pd
import matplotlib.pyplot as plt
from tabulate import tabulate

from .data import MetricRow
from .errors import AggregationError

# trec_eval metric name -> summary column label
METRIC_LABELS: dict[str, str] = {
  'map': 'MAP',
  'P_10': 'P@10',
  'Rprec': 'R-Prec',
  'bpref': 'bpref',
  'recip_rank': 'recip_rank',
  'iprec_at_recall_0.00': 'InterpolatedPrecision',
}
RECALL_INPUTS: tuple[str, str] = ('num_rel_ret', 'num_rel')
DEFAULT_METRICS: tuple[str, ...] = (*METRIC_LABELS, *RECALL_INPUTS)
PRIMARY_METRIC = 'map'
RECALL = 'recall'

BOOST_FLAGS: tuple[str, ...] = ('T1', 'C1', 'T2', 'C2')
FILENAME_DELIMITER = '_'
REPORT_SUFFIX = '_trec.txt'

_METRIC_LINE = re.compile(r'^(\S+)\s+all\s+(\S+)$')


def parse_report(text: str, metric_names: Iterable[str]) -> dict[str, str]:
  """Collect aggregate (`all`) values for the wanted metrics; last one wins."""
  wanted = set(metric_names)
  values: dict[str, str] = {}
  for line in text.splitlines():
    m = _METRIC_LINE.match(line.strip())
    if m and m.group(1) in wanted:
      values[m.group(1)] = m.group(2)
  return values


def identity_from_filename(name: str) -> tuple[str, str, dict[str, str]]:
  """Split `<Analyzer>_<Similarity>_<boost tokens>_trec.txt` into its parts.

  Boost flags are '1' when the token appears (any case) after the first two
  fields, else '0'.
  """
  if name.endswith(REPORT_SUFFIX):
    stem = name[: -len(REPORT_SUFFIX)]
  else:
    stem = os.path.splitext(name)[0]
  parts = stem.split(FILENAME_DELIMITER)
  analyzer = parts[0]
  similarity = parts[1] if len(parts) > 1 else 'Unknown'
  rest = {p.lower() for p in parts[2:]}
  flags = {f: '1' if f.lower() in rest else '0' for f in BOOST_FLAGS}
  return analyzer, similarity, flags


def _as_float(value: str | None) -> float:
  """Parse a metric value; empty or malformed counts as 0.0."""
  try:
    return float(value) if value else 0.0
  except ValueError:
    return 0.0


def derive_recall(metrics: dict[str, str]) -> float:
  """num_rel_ret / num_rel, or 0.0 when either is missing or num_rel is 0."""
  retrieved, relevant = (metrics.get(k) for k in RECALL_INPUTS)
  if not retrieved or not relevant:
    return 0.0
  denom = _as_float(relevant)
  if denom <= 0:
    return 0.0
  return _as_float(retrieved) / denom


def aggregate(
  report_dir: str | Path,
  metric_names: Sequence[str] = DEFAULT_METRICS,
  primary: str = PRIMARY_METRIC,
  on_issue: Callable[[str], None] | None = None,
) -> list[MetricRow]:
  """Build one MetricRow per report, sorted by `primary` descending.

  Every row carries every requested metric ('' when absent) plus recall.
  Reports are visited in filename order and ties keep that order.

  Raises:
    AggregationError: the directory cannot be listed.
  """
  try:
    with os.scandir(report_dir) as it:
      names = sorted(
        e.name for e in it if e.is_file() and e.name.endswith('.txt')
      )
  except OSError as e:
    raise AggregationError(
      f'cannot read report directory {report_dir}: {e}'
    ) from e

  rows: list[MetricRow] = []
  for name in names:
    try:
      text = Path(report_dir, name).read_text(encoding='utf-8', errors='replace')
    except OSError as e:
      if on_issue:
        on_issue(f'cannot read report {name}: {e}')
      continue
    found = parse_report(text, metric_names)
    metrics = {m: found.get(m, '') for m in metric_names}
    metrics[RECALL] = f'{derive_recall(metrics):.4f}'
    analyzer, similarity, flags = identity_from_filename(name)
    rows.append(
      MetricRow(
        analyzer=analyzer,
        similarity=similarity,
        flags=flags,
        metrics=metrics,
        source=name,
      )
    )
  return sorted(rows, key=lambda r: _as_float(r.metrics.get(primary)), reverse=True)


def summary_header(reduced: bool = False) -> list[str]:
  """CSV header: the reduced variant drops boost flags and recall."""
  labels = list(METRIC_LABELS.values())
  if reduced:
    return ['Analyzer', 'Similarity', *labels]
  return ['Analyzer', 'Similarity', *BOOST_FLAGS, *labels, 'Recall']


def row_values(row: MetricRow, reduced: bool = False) -> list[str]:
  """Cell values of one row, aligned with `summary_header(reduced)`."""
  metrics = [row.metrics.get(m, '') for m in METRIC_LABELS]
  if reduced:
    return [row.analyzer, row.similarity, *metrics]
  flags = [row.flags.get(f, '0') for f in BOOST_FLAGS]
  return [
    row.analyzer,
    row.similarity,
    *flags,
    *metrics,
    row.metrics.get(RECALL, ''),
  ]


def write_summary_csv(
  rows: Sequence[MetricRow], path: str | Path, reduced: bool = False
) -> None:
  """Write the comma-joined summary; values are not quoted."""
  with open(path, 'w', encoding='utf-8') as f:
    f.write(','.join(summary_header(reduced)) + '\n')
    for row in rows:
      f.write(','.join(row_values(row, reduced)) + '\n')


def summary_frame(rows: Sequence[MetricRow], reduced: bool = False) -> pd.DataFrame:
  """Summary as a DataFrame, one row per configuration, same order."""
  return pd.DataFrame(
    [row_values(r, reduced) for r in rows], columns=summary_header(reduced)
  )


def format_table(
  rows: Sequence[MetricRow], reduced: bool = False, limit: int | None = None
) -> str:
  """Render the (top of the) summary as a GitHub-style table."""
  df = summary_frame(rows, reduced)
  if limit is not None:
    df = df.head(limit)
  return tabulate(df, headers='keys', tablefmt='github', showindex=False)


def render_summary(
  rows: Sequence[MetricRow], out_dir: str | Path, reduced: bool = False
) -> dict[str, str]:
  """Write summary.md and a MAP bar chart next to the CSV.

  Returns:
    Mapping of artifact kind to written path.
  """
  os.makedirs(out_dir, exist_ok=True)
  written: dict[str, str] = {}

  md_path = os.path.join(out_dir, 'summary.md')
  lines = ['# Cranfield Evaluation Summary\n']
  lines.append(f'**Configurations:** {len(rows)}  ')
  if rows:
    best = rows[0]
    lines.append(
      f'**Best MAP:** {best.metrics.get(PRIMARY_METRIC, "")} '
      f'({best.analyzer} / {best.similarity})\n'
    )
    lines.append(format_table(rows, reduced))
    lines.append('\n![MAP by configuration](map_by_configuration.png)\n')
  with open(md_path, 'w', encoding='utf-8') as f:
    f.write('\n'.join(lines))
  written['markdown'] = md_path

  if rows:
    labels = [r.source.removesuffix(REPORT_SUFFIX) for r in rows]
    maps = [_as_float(r.metrics.get(PRIMARY_METRIC)) for r in rows]
    plt.figure(figsize=(8, max(3.0, 0.28 * len(rows))))
    plt.barh(labels[::-1], maps[::-1])
    plt.xlabel('MAP')
    plt.title('MAP by Configuration (Cranfield)')
    plt.tight_layout()
    chart_path = os.path.join(out_dir, 'map_by_configuration.png')
    plt.savefig(chart_path, dpi=160)
    plt.close()
    written['chart'] = chart_path
  return written
