"""Writes ranked search results in the relevance-ranking exchange format."""

from collections.abc import Callable, Sequence
from pathlib import Path

from .data import Boosts, QueryRecord, RankedHit
from .engine import Hit, sanitize_query
from .errors import QuerySyntaxError

DEFAULT_RUN_TAG = 'cranLucene'

SearchFn = Callable[[str, Boosts, int], Sequence[Hit]]


def rank_hits(query_id: str, hits: Sequence[Hit]) -> list[RankedHit]:
  """Number hits 1..n in the order the engine returned them."""
  return [
    RankedHit(query_id=query_id, document_id=doc_id, rank=rank, score=score)
    for rank, (doc_id, score) in enumerate(hits, 1)
  ]


def write_results(
  queries: Sequence[QueryRecord],
  search_fn: SearchFn,
  output_path: str | Path,
  top_k: int,
  boosts: Boosts,
  run_tag: str = DEFAULT_RUN_TAG,
  on_error: Callable[[QueryRecord, Exception], None] | None = None,
) -> int:
  """Search every query in order and rewrite `output_path` with the hits.

  Reserved query characters are stripped before searching. A query the
  engine still rejects is passed to `on_error` and skipped; it never aborts
  the file.

  Returns:
    Number of result lines written.
  """
  written = 0
  with open(output_path, 'w', encoding='utf-8') as f:
    for query in queries:
      try:
        hits = search_fn(sanitize_query(query.analyzed_text), boosts, top_k)
      except QuerySyntaxError as e:
        if on_error:
          on_error(query, e)
        continue
      for hit in rank_hits(query.id, hits):
        f.write(hit.to_trec_line(run_tag) + '\n')
        written += 1
  return written
