import pytest

from cranfield_eval.data import CorpusRecord

CORPUS_TEXT = """.I 1
.T
Heat transfer
.A
smith
.B
j. ae. scs. 25, 1958
.W
A study of heat transfer
   in turbulent flow
.I 2
.T
Wing design
.W
Aerodynamics of wing sections
"""

QUERY_TEXT = """.I 001
.W
heat transfer
"""

QRELS_TEXT = """1 0 1 2
1 0 2 1
"""


@pytest.fixture
def records():
  return [
    CorpusRecord(
      id='1',
      title='Heat transfer',
      author='smith',
      body='A study of heat transfer in turbulent flow',
    ),
    CorpusRecord(id='2', title='Wing design', body='Aerodynamics of wing sections'),
  ]


@pytest.fixture
def collection(tmp_path):
  """Corpus, query and judgment files on disk."""
  paths = {}
  for name, text in (
    ('cran.all', CORPUS_TEXT),
    ('cran.qry', QUERY_TEXT),
    ('qrels', QRELS_TEXT),
  ):
    p = tmp_path / name
    p.write_text(text)
    paths[name] = p
  return paths
