"""Index engine: builds per-configuration indexes and runs ranked search.

`IndexEngine` is the capability the sweep depends on. `LexicalEngine` is the
bundled implementation: every analyzed field is stored as a sparse
document-term count matrix, and search sums boosted per-field term scores
from the scoring table in `scoring.py`.
"""

import json
import shutil
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import numpy as np
from scipy.sparse import csr_matrix, load_npz, save_npz

from .analyzers import analyze
from .data import Boosts, CorpusRecord, ScoringVariant, TokenizerVariant
from .errors import IndexBuildError, QuerySyntaxError
from .scoring import SCORERS, FieldStats

DEFAULT_TOP_K = 100

INDEXED_FIELDS: tuple[str, ...] = ('title', 'author', 'bibliography', 'body')
FILTER_FIELDS: tuple[str, ...] = ('author', 'title')
RESERVED_CHARS = '?*'

Hit = tuple[str, float]


def sanitize_query(text: str) -> str:
  """Replace characters reserved by the query grammar with spaces."""
  for ch in RESERVED_CHARS:
    text = text.replace(ch, ' ')
  return text


def check_query(text: str) -> None:
  """Raise QuerySyntaxError if `text` cannot be parsed."""
  if not text.strip():
    raise QuerySyntaxError('empty query')
  bad = sorted({ch for ch in text if ch in RESERVED_CHARS})
  if bad:
    raise QuerySyntaxError(f'reserved characters in query: {"".join(bad)}')


class IndexEngine(Protocol):
  """Capability consumed by the sweep: build an index, then search it."""

  def build(
    self,
    records: Sequence[CorpusRecord],
    tokenizer: TokenizerVariant,
    index_dir: Path,
  ) -> Any: ...

  def search(
    self,
    index: Any,
    scoring: ScoringVariant,
    query: str,
    boosts: Boosts,
    filters: Mapping[str, str] | None = None,
    top_k: int = DEFAULT_TOP_K,
  ) -> list[Hit]: ...


@dataclass
class LexicalIndex:
  """A built index: exact-match document ids plus per-field term counts."""

  path: Path
  tokenizer: TokenizerVariant
  doc_ids: list[str]
  vocab: dict[str, int]
  fields: dict[str, FieldStats]

  @classmethod
  def load(cls, path: str | Path) -> 'LexicalIndex':
    """Reopen an index written by `LexicalEngine.build`."""
    path = Path(path)
    meta = json.loads((path / 'meta.json').read_text(encoding='utf-8'))
    terms = json.loads((path / 'terms.json').read_text(encoding='utf-8'))
    ids = json.loads((path / 'ids.json').read_text(encoding='utf-8'))
    return cls(
      path=path,
      tokenizer=TokenizerVariant(meta['tokenizer']),
      doc_ids=ids,
      vocab={t: i for i, t in enumerate(terms)},
      fields={
        name: FieldStats.from_counts(load_npz(path / f'{name}.npz'))
        for name in meta['fields']
      },
    )

  def term_mask(self, field: str, term: str) -> np.ndarray:
    """Boolean mask of documents whose `field` contains exactly `term`."""
    col = self.vocab.get(term)
    if col is None:
      return np.zeros(len(self.doc_ids), dtype=bool)
    return self.fields[field].column(col) > 0


def _count_matrix(
  rows: list[Counter], vocab: dict[str, int]
) -> csr_matrix:
  data: list[int] = []
  indices: list[int] = []
  indptr = [0]
  for counts in rows:
    for term, n in counts.items():
      indices.append(vocab[term])
      data.append(n)
    indptr.append(len(indices))
  return csr_matrix(
    (np.array(data, dtype=np.float64), np.array(indices, dtype=np.int64), indptr),
    shape=(len(rows), len(vocab)),
  )


class LexicalEngine:
  """Sparse-matrix implementation of `IndexEngine`."""

  def build(
    self,
    records: Sequence[CorpusRecord],
    tokenizer: TokenizerVariant,
    index_dir: Path,
  ) -> LexicalIndex:
    """Analyze and store `records`, replacing any index at `index_dir`."""
    if not records:
      raise IndexBuildError('no records to index')
    index_dir = Path(index_dir)

    per_field: dict[str, list[Counter]] = {
      name: [Counter(analyze(getattr(r, name), tokenizer)) for r in records]
      for name in INDEXED_FIELDS
    }
    vocab: dict[str, int] = {}
    for rows in per_field.values():
      for counts in rows:
        for term in counts:
          vocab.setdefault(term, len(vocab))
    matrices = {
      name: _count_matrix(rows, vocab) for name, rows in per_field.items()
    }
    doc_ids = [r.id for r in records]

    try:
      if index_dir.exists():
        shutil.rmtree(index_dir)
      index_dir.mkdir(parents=True)
      for name, matrix in matrices.items():
        save_npz(index_dir / f'{name}.npz', matrix)
      (index_dir / 'terms.json').write_text(
        json.dumps(list(vocab)), encoding='utf-8'
      )
      (index_dir / 'ids.json').write_text(json.dumps(doc_ids), encoding='utf-8')
      (index_dir / 'meta.json').write_text(
        json.dumps(
          {
            'tokenizer': tokenizer.value,
            'fields': list(INDEXED_FIELDS),
            'docs': len(doc_ids),
          },
          indent=2,
        ),
        encoding='utf-8',
      )
    except OSError as e:
      raise IndexBuildError(f'cannot write index at {index_dir}: {e}') from e

    return LexicalIndex(
      path=index_dir,
      tokenizer=tokenizer,
      doc_ids=doc_ids,
      vocab=vocab,
      fields={name: FieldStats.from_counts(m) for name, m in matrices.items()},
    )

  def search(
    self,
    index: LexicalIndex,
    scoring: ScoringVariant,
    query: str,
    boosts: Boosts,
    filters: Mapping[str, str] | None = None,
    top_k: int = DEFAULT_TOP_K,
  ) -> list[Hit]:
    """Rank documents for `query`, highest score first, at most `top_k`.

    Each query token is matched against title and body with their boosts;
    filters are exact-match term constraints on author/title.
    """
    if top_k < 1:
      raise ValueError(f'top_k must be >= 1, got {top_k}')
    check_query(query)
    scorer = SCORERS[scoring]
    n = len(index.doc_ids)
    scores = np.zeros(n)
    matched = np.zeros(n, dtype=bool)
    weighted = (('title', boosts.title), ('body', boosts.body))

    for term, repeats in Counter(analyze(query, index.tokenizer)).items():
      col = index.vocab.get(term)
      if col is None:
        continue
      for name, boost in weighted:
        stats = index.fields[name]
        tf = stats.column(col)
        hit = tf > 0
        if not hit.any():
          continue
        matched |= hit
        scores += repeats * boost * scorer(tf, col, stats)

    for name, value in (filters or {}).items():
      if name not in FILTER_FIELDS:
        raise ValueError(f'Unknown filter field: {name}')
      if value:
        matched &= index.term_mask(name, value)

    candidates = np.flatnonzero(matched)
    order = candidates[np.argsort(-scores[candidates], kind='stable')]
    return [(index.doc_ids[i], float(scores[i])) for i in order[:top_k]]
