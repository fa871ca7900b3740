"""Per-field term scoring functions, one per scoring variant.

Each function takes the dense per-document frequency column of one term in
one field and returns per-document scores, zero where the term is absent.
Parameters follow the classic engine defaults.
"""

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from scipy.sparse import csc_matrix

from .data import ScoringVariant

BM25_K1 = 1.2
BM25_B = 0.75
DIRICHLET_MU = 1500.0
JELINEK_MERCER_LAMBDA = 0.7


@dataclass
class FieldStats:
  """Document-term counts of one field plus the collection statistics."""

  counts: csc_matrix
  doc_len: np.ndarray
  doc_freq: np.ndarray
  term_total: np.ndarray
  total_terms: float
  doc_count: int
  avg_len: float

  @classmethod
  def from_counts(cls, counts) -> 'FieldStats':
    csc = csc_matrix(counts, dtype=np.float64)
    doc_len = np.asarray(csc.sum(axis=1)).ravel()
    # Only documents that actually have the field count towards its stats.
    doc_count = max(int(np.count_nonzero(doc_len)), 1)
    total = float(doc_len.sum())
    return cls(
      counts=csc,
      doc_len=doc_len,
      doc_freq=np.diff(csc.indptr).astype(np.float64),
      term_total=np.asarray(csc.sum(axis=0)).ravel(),
      total_terms=total,
      doc_count=doc_count,
      avg_len=total / doc_count if total else 1.0,
    )

  @property
  def num_docs(self) -> int:
    return self.counts.shape[0]

  def column(self, term: int) -> np.ndarray:
    """Dense frequency vector of `term` over all documents."""
    out = np.zeros(self.num_docs)
    start, end = self.counts.indptr[term], self.counts.indptr[term + 1]
    out[self.counts.indices[start:end]] = self.counts.data[start:end]
    return out

  def collection_prob(self, term: int) -> float:
    return (self.term_total[term] + 1.0) / (self.total_terms + 1.0)


Scorer = Callable[[np.ndarray, int, FieldStats], np.ndarray]


def tfidf(tf: np.ndarray, term: int, stats: FieldStats) -> np.ndarray:
  idf = 1.0 + np.log((stats.doc_count + 1.0) / (stats.doc_freq[term] + 1.0))
  hit = tf > 0
  norm = np.zeros_like(tf)
  norm[hit] = 1.0 / np.sqrt(stats.doc_len[hit])
  return np.sqrt(tf) * idf * idf * norm


def bm25(tf: np.ndarray, term: int, stats: FieldStats) -> np.ndarray:
  df = stats.doc_freq[term]
  idf = np.log(1.0 + (stats.doc_count - df + 0.5) / (df + 0.5))
  length = 1.0 - BM25_B + BM25_B * stats.doc_len / stats.avg_len
  return idf * tf / (tf + BM25_K1 * length)


def lm_dirichlet(tf: np.ndarray, term: int, stats: FieldStats) -> np.ndarray:
  hit = tf > 0
  out = np.zeros_like(tf)
  p = stats.collection_prob(term)
  out[hit] = np.log1p(tf[hit] / (DIRICHLET_MU * p)) + np.log(
    DIRICHLET_MU / (stats.doc_len[hit] + DIRICHLET_MU)
  )
  return np.maximum(out, 0.0)


def lm_jelinek_mercer(
  tf: np.ndarray, term: int, stats: FieldStats
) -> np.ndarray:
  hit = tf > 0
  out = np.zeros_like(tf)
  lam = JELINEK_MERCER_LAMBDA
  p = stats.collection_prob(term)
  out[hit] = np.log1p(((1.0 - lam) * tf[hit] / stats.doc_len[hit]) / (lam * p))
  return out


SCORERS: dict[ScoringVariant, Scorer] = {
  ScoringVariant.TFIDF: tfidf,
  ScoringVariant.BM25: bm25,
  ScoringVariant.LM_DIRICHLET: lm_dirichlet,
  ScoringVariant.LM_JELINEK_MERCER: lm_jelinek_mercer,
}
