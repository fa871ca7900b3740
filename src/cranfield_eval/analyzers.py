"""Tokenizer variants.

Each variant is a plain function from text to tokens; `ANALYZERS` maps the
variant to its function. The same function is applied to indexed fields and
to queries.
"""

import re
import unicodedata
from collections.abc import Callable

import Stemmer

from .data import TokenizerVariant

Analyzer = Callable[[str], list[str]]

_STEMMER = Stemmer.Stemmer('porter')

# Unicode word runs, keeping inner apostrophes and dots ("don't", "3.5").
_WORD_RE = re.compile(r"\w+(?:['.]\w+)*")
_LETTERS_RE = re.compile(r'[^\W\d_]+')

ENGLISH_STOP_WORDS: frozenset[str] = frozenset(
  {
    'a', 'an', 'and', 'are', 'as', 'at', 'be', 'but', 'by', 'for', 'if',
    'in', 'into', 'is', 'it', 'no', 'not', 'of', 'on', 'or', 'such', 'that',
    'the', 'their', 'then', 'there', 'these', 'they', 'this', 'to', 'was',
    'will', 'with',
  }
)

CRANFIELD_STOP_WORDS: frozenset[str] = frozenset(
  {
    'a', 'about', 'above', 'after', 'again', 'against', 'all', 'almost',
    'alone', 'along', 'already', 'also', 'although', 'always', 'among', 'an',
    'and', 'another', 'any', 'anybody', 'anyone', 'anything', 'anywhere',
    'are', 'as', 'at', 'be', 'because', 'been', 'before', 'being', 'between',
    'both', 'but', 'by', 'can', 'could', 'did', 'do', 'does', 'doing', 'down',
    'during', 'each', 'few', 'for', 'from', 'further', 'had', 'has', 'have',
    'having', 'he', 'her', 'here', 'hers', 'him', 'his', 'how', 'i', 'if',
    'in', 'into', 'is', 'it', 'its', 'itself', 'just', 'me', 'more', 'most',
    'my', 'myself', 'no', 'nor', 'not', 'of', 'off', 'on', 'once', 'only',
    'or', 'other', 'our', 'ours', 'ourselves', 'out', 'over', 'own', 'same',
    'she', 'should', 'so', 'some', 'such', 'than', 'that', 'the', 'their',
    'theirs', 'them', 'themselves', 'then', 'there', 'these', 'they', 'this',
    'those', 'through', 'to', 'too', 'under', 'until', 'up', 'very', 'was',
    'we', 'were', 'what', 'when', 'where', 'which', 'while', 'who', 'whom',
    'why', 'with', 'you', 'your', 'yours', 'yourself', 'yourselves',
  }
)


def _fold_ascii(token: str) -> str:
  """Strip accents ('é' -> 'e')."""
  decomposed = unicodedata.normalize('NFKD', token)
  return ''.join(c for c in decomposed if not unicodedata.combining(c))


def _strip_possessive(token: str) -> str:
  if token.endswith(("'s", "’s")):
    return token[:-2]
  return token


def standard(text: str) -> list[str]:
  return [t.lower() for t in _WORD_RE.findall(text)]


def english(text: str) -> list[str]:
  tokens = [_strip_possessive(t) for t in standard(text)]
  kept = [t for t in tokens if t and t not in ENGLISH_STOP_WORDS]
  return _STEMMER.stemWords(kept)


def simple(text: str) -> list[str]:
  return [t.lower() for t in _LETTERS_RE.findall(text)]


def whitespace(text: str) -> list[str]:
  return text.split()


def cranfield(text: str) -> list[str]:
  """Standard tokens, ASCII folded, domain stop words removed, stemmed."""
  tokens = [_fold_ascii(t) for t in standard(text)]
  kept = [t for t in tokens if t and t not in CRANFIELD_STOP_WORDS]
  return _STEMMER.stemWords(kept)


ANALYZERS: dict[TokenizerVariant, Analyzer] = {
  TokenizerVariant.STANDARD: standard,
  TokenizerVariant.ENGLISH: english,
  TokenizerVariant.SIMPLE: simple,
  TokenizerVariant.WHITESPACE: whitespace,
  TokenizerVariant.CUSTOM: cranfield,
}


def analyze(text: str, variant: TokenizerVariant) -> list[str]:
  """Tokenize `text` with the given variant."""
  return ANALYZERS[variant](text)


def normalize(text: str, variant: TokenizerVariant) -> str:
  """Analyze and re-join with single spaces (query normalization)."""
  return ' '.join(analyze(text, variant))
