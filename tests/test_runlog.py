import json

from cranfield_eval.runlog import RunLogger


def test_events_appended_as_json_lines(tmp_path, capsys):
  path = tmp_path / 'logs' / 'sweep.log'
  logger = RunLogger(str(path), stdout_format='json')
  logger.log({'event': 'combo_start', 'combo': 'EnglishAnalyzer_BM25_t1_c1'})
  logger.issue('corpus', 'duplicate record id 7, skipped')
  logger.close()

  events = [json.loads(line) for line in path.read_text().splitlines()]
  assert [e['event'] for e in events] == ['combo_start', 'parse_issue']
  assert events[1]['stage'] == 'corpus'
  assert 'combo_start' in capsys.readouterr().out


def test_pretty_lines(tmp_path, capsys):
  logger = RunLogger(None, stdout_format='pretty')
  logger.log({'event': 'combo_done', 'combo': 'X', 'status': 'eval_failed'})
  out = capsys.readouterr().out
  assert 'X' in out and 'eval_failed' in out


def test_disabled_logger_writes_nothing(tmp_path, capsys):
  path = tmp_path / 'sweep.log'
  logger = RunLogger(str(path), enabled=False)
  logger.log({'event': 'combo_start'})
  assert not path.exists()
  assert capsys.readouterr().out == ''
