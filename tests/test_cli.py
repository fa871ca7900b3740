import argparse
import sys

import pytest

from cranfield_eval import cli
from cranfield_eval.config import load_config
from cranfield_eval.data import ScoringVariant, TokenizerVariant


def test_parse_choices_accepts_labels_and_names():
  got = cli._parse_choices(
    'EnglishAnalyzer, custom', TokenizerVariant, tuple(TokenizerVariant)
  )
  assert got == (TokenizerVariant.ENGLISH, TokenizerVariant.CUSTOM)
  assert cli._parse_choices(None, ScoringVariant, ()) == ()
  with pytest.raises(SystemExit):
    cli._parse_choices('Okapi', ScoringVariant, ())


def test_parse_boosts():
  assert cli._parse_boosts('1:1,2.5:1,1') == ((1.0, 1.0), (2.5, 1.0), (1.0, 1.0))
  assert cli._parse_boosts(None) == cli.DEFAULT_BOOSTS


def test_config_from_environment(monkeypatch):
  monkeypatch.setenv('TREC_EVAL_BIN', 'docker run trec_eval')
  monkeypatch.setenv('CRANEVAL_TOP_K', '50')
  monkeypatch.setenv('CRANEVAL_EVAL_TIMEOUT', '')
  cfg = load_config()
  assert cfg.trec_eval == ('docker', 'run', 'trec_eval')
  assert cfg.top_k == 50
  assert cfg.eval_timeout is None


def test_aggregate_command(tmp_path, monkeypatch, capsys):
  reports = tmp_path / 'trec_eval'
  reports.mkdir()
  (reports / 'EnglishAnalyzer_BM25_t1_c1_trec.txt').write_text('map\tall\t0.4\n')
  monkeypatch.setattr(
    sys, 'argv', ['craneval', 'aggregate', '--out', str(tmp_path)]
  )
  with pytest.raises(SystemExit) as exc:
    cli.main()
  assert exc.value.code == 0
  csv = (tmp_path / cli.SUMMARY_NAME).read_text().splitlines()
  assert csv[1].startswith('EnglishAnalyzer,BM25,1,1,0,0,0.4,')
  assert '1 configurations' in capsys.readouterr().out


def test_aggregate_command_missing_dir(tmp_path, monkeypatch):
  monkeypatch.setattr(
    sys,
    'argv',
    ['craneval', 'aggregate', '--in', str(tmp_path / 'nope'), '--out', str(tmp_path)],
  )
  with pytest.raises(SystemExit) as exc:
    cli.main()
  assert exc.value.code == 1


def test_empty_choice_list_rejected():
  with pytest.raises(SystemExit):
    cli._parse_choices(',', TokenizerVariant, tuple(TokenizerVariant))


def test_top_k_must_be_positive(monkeypatch):
  with pytest.raises(argparse.ArgumentTypeError):
    cli._positive_int('0')
  assert cli._positive_int('5') == 5
  monkeypatch.setenv('CRANEVAL_TOP_K', '-3')
  with pytest.raises(ValueError):
    load_config()


def test_sweep_rejects_zero_top_k_flag(monkeypatch):
  monkeypatch.setattr(sys, 'argv', ['craneval', 'sweep', '--top-k', '0'])
  with pytest.raises(SystemExit) as exc:
    cli.main()
  assert exc.value.code == 2
