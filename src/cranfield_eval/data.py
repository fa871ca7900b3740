"""Core data structures for the Cranfield evaluation pipeline.

Defines corpus and query records, sweep configurations, ranked hits, and the
metric rows produced by aggregation.
"""

from dataclasses import dataclass, field
from enum import Enum

# query id -> (document id -> relevance grade)
RelevanceJudgment = dict[str, dict[str, int]]


class TokenizerVariant(str, Enum):
  """Text-normalization pipelines, valued by their artifact label."""

  STANDARD = 'StandardAnalyzer'
  ENGLISH = 'EnglishAnalyzer'
  SIMPLE = 'SimpleAnalyzer'
  WHITESPACE = 'WhitespaceAnalyzer'
  CUSTOM = 'CustomAnalyzer'


class ScoringVariant(str, Enum):
  """Ranking-function families, valued by their artifact label."""

  TFIDF = 'TFIDF'
  BM25 = 'BM25'
  LM_DIRICHLET = 'LMDirichlet'
  LM_JELINEK_MERCER = 'LMJelinekMercer'


@dataclass(frozen=True)
class CorpusRecord:
  """One bibliographic document."""

  id: str
  title: str = ''
  author: str = ''
  bibliography: str = ''
  body: str = ''


@dataclass(frozen=True)
class QueryRecord:
  """A query already normalized by one tokenizer variant."""

  id: str
  analyzed_text: str


@dataclass(frozen=True)
class Boosts:
  """Per-field score multipliers."""

  title: float = 1.0
  body: float = 1.0


def _boost_tag(value: float) -> str:
  """Format a boost for use in a filename: 1.0 -> '1', 1.5 -> '1p5'.

  The shortest round-tripping repr is used so distinct boosts never share a
  tag.
  """
  text = repr(float(value)).removesuffix('.0')
  return text.replace('.', 'p').replace('-', 'm').replace('+', '')


@dataclass(frozen=True)
class Configuration:
  """One point of the sweep: tokenizer x scoring x field boosts."""

  tokenizer: TokenizerVariant
  scoring: ScoringVariant
  title_boost: float = 1.0
  body_boost: float = 1.0

  @property
  def boosts(self) -> Boosts:
    return Boosts(title=self.title_boost, body=self.body_boost)

  @property
  def boost_tag(self) -> str:
    return f't{_boost_tag(self.title_boost)}_c{_boost_tag(self.body_boost)}'

  @property
  def combo_id(self) -> str:
    """Deterministic, filesystem-safe identifier used by every artifact path."""
    return f'{self.tokenizer.value}_{self.scoring.value}_{self.boost_tag}'


@dataclass(frozen=True)
class RankedHit:
  """A single ranked search result for one query."""

  query_id: str
  document_id: str
  rank: int
  score: float

  def to_trec_line(self, run_tag: str) -> str:
    """Render in the relevance-ranking exchange format."""
    return (
      f'{self.query_id} Q0 {self.document_id} {self.rank} '
      f'{self.score:.6f} {run_tag}'
    )


@dataclass
class MetricRow:
  """Aggregated metrics for one configuration's evaluation report."""

  analyzer: str
  similarity: str
  flags: dict[str, str] = field(default_factory=dict)
  metrics: dict[str, str] = field(default_factory=dict)
  source: str = ''
