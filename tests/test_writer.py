from cranfield_eval.data import Boosts, QueryRecord
from cranfield_eval.errors import QuerySyntaxError
from cranfield_eval.writer import write_results

HITS = {
  'a': [('10', 2.0), ('11', 1.5)],
  'b': [],
  'c': [('12', 0.5), ('10', 0.25)],
}
QUERIES = [QueryRecord('1', 'a'), QueryRecord('2', 'b'), QueryRecord('3', 'c')]


def fake_search(query, boosts, top_k):
  return HITS[query.strip()][:top_k]


def test_ranks_restart_per_query(tmp_path):
  out = tmp_path / 'run.txt'
  n = write_results(QUERIES, fake_search, out, 10, Boosts())
  lines = out.read_text().splitlines()
  assert n == len(lines) == 4
  assert lines[0] == '1 Q0 10 1 2.000000 cranLucene'
  assert lines[1] == '1 Q0 11 2 1.500000 cranLucene'
  assert lines[2] == '3 Q0 12 1 0.500000 cranLucene'
  assert lines[3] == '3 Q0 10 2 0.250000 cranLucene'


def test_file_is_rewritten_not_appended(tmp_path):
  out = tmp_path / 'run.txt'
  write_results(QUERIES, fake_search, out, 1, Boosts())
  write_results(QUERIES, fake_search, out, 1, Boosts())
  assert len(out.read_text().splitlines()) == 2


def test_rejected_query_is_reported_and_skipped(tmp_path):
  failed = []

  def search(query, boosts, top_k):
    if query == 'a':
      raise QuerySyntaxError('bad')
    return fake_search(query, boosts, top_k)

  out = tmp_path / 'run.txt'
  n = write_results(
    QUERIES, search, out, 10, Boosts(), on_error=lambda q, e: failed.append(q.id)
  )
  assert failed == ['1']
  assert n == 2


def test_reserved_characters_stripped_before_search(tmp_path):
  seen = []

  def search(query, boosts, top_k):
    seen.append(query)
    return []

  queries = [QueryRecord('1', 'wing?*')]
  write_results(queries, search, tmp_path / 'r.txt', 5, Boosts())
  assert seen == ['wing  ']
