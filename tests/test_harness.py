import sys
import textwrap

import pytest

from cranfield_eval.data import Configuration, ScoringVariant, TokenizerVariant
from cranfield_eval.harness import (
  ExperimentRunner,
  SweepConfig,
  artifact_paths,
  iter_configurations,
)
from cranfield_eval.report import aggregate

FAKE_TREC_EVAL = """
import sys
if 'WhitespaceAnalyzer' in sys.argv[2]:
    sys.stderr.write('cannot evaluate\\n')
    sys.exit(1)
print('num_rel\\tall\\t2')
print('num_rel_ret\\tall\\t1')
print('map\\tall\\t0.5000')
"""


def _sweep(tmp_path, collection, **overrides):
  script = tmp_path / 'fake_trec_eval.py'
  script.write_text(textwrap.dedent(FAKE_TREC_EVAL))
  kwargs = dict(
    corpus_path=str(collection['cran.all']),
    queries_path=str(collection['cran.qry']),
    qrels_path=str(collection['qrels']),
    index_root=str(tmp_path / 'index'),
    out_dir=str(tmp_path / 'output'),
    evaluator=(sys.executable, str(script)),
    scorings=(ScoringVariant.BM25,),
    boosts=((1.0, 1.0),),
    verbose=False,
  )
  kwargs.update(overrides)
  return SweepConfig(**kwargs)


def test_default_sweep_has_sixty_unique_configurations():
  cfg = SweepConfig(corpus_path='c', queries_path='q', qrels_path='r')
  combos = list(iter_configurations(cfg))
  assert len(combos) == 60
  assert len({c.combo_id for c in combos}) == 60
  assert combos[0].combo_id == 'StandardAnalyzer_TFIDF_t1_c1'
  assert combos[-1].combo_id == 'CustomAnalyzer_LMJelinekMercer_t1_c2'


def test_fractional_boost_in_combo_id():
  combo = Configuration(
    TokenizerVariant.ENGLISH, ScoringVariant.BM25, title_boost=1.5
  )
  assert combo.combo_id == 'EnglishAnalyzer_BM25_t1p5_c1'


def test_artifact_paths_follow_combo_id(tmp_path, collection):
  cfg = _sweep(tmp_path, collection)
  combo = Configuration(TokenizerVariant.SIMPLE, ScoringVariant.BM25, 2.0, 1.0)
  paths = artifact_paths(cfg, combo)
  assert paths.index_dir.name == 'index_SimpleAnalyzer_BM25_t2_c1'
  assert paths.results.name == 'SimpleAnalyzer_BM25_t2_c1_results.txt'
  assert paths.report.name == 'SimpleAnalyzer_BM25_t2_c1_trec.txt'


def test_failed_evaluation_is_contained(tmp_path, collection):
  cfg = _sweep(tmp_path, collection)
  outcomes = ExperimentRunner(cfg).run()
  statuses = {o.configuration.tokenizer: o.status for o in outcomes}
  assert statuses.pop(TokenizerVariant.WHITESPACE) == 'eval_failed'
  assert set(statuses.values()) == {'ok'}

  rows = aggregate(cfg.reports_dir)
  assert len(rows) == 4
  assert 'WhitespaceAnalyzer' not in {r.analyzer for r in rows}
  assert rows[0].metrics['recall'] == '0.5000'

  results = cfg.results_dir / 'EnglishAnalyzer_BM25_t1_c1_results.txt'
  first = results.read_text().splitlines()[0]
  assert first.startswith('1 Q0 1 1 ')
  assert first.endswith(' cranLucene')


def test_rerun_overwrites_artifacts(tmp_path, collection):
  cfg = _sweep(tmp_path, collection, tokenizers=(TokenizerVariant.ENGLISH,))
  ExperimentRunner(cfg).run()
  results = cfg.results_dir / 'EnglishAnalyzer_BM25_t1_c1_results.txt'
  before = results.read_text()
  ExperimentRunner(cfg).run()
  assert results.read_text() == before


def test_empty_corpus_fails_builds_without_aborting(tmp_path, collection):
  collection['cran.all'].write_text('')
  cfg = _sweep(tmp_path, collection, tokenizers=(TokenizerVariant.ENGLISH,))
  [outcome] = ExperimentRunner(cfg).run()
  assert outcome.status == 'build_failed'
  assert not (cfg.reports_dir / 'EnglishAnalyzer_BM25_t1_c1_trec.txt').exists()


def test_concurrent_sweep_keeps_configuration_order(tmp_path, collection):
  cfg = _sweep(
    tmp_path,
    collection,
    tokenizers=(TokenizerVariant.STANDARD, TokenizerVariant.ENGLISH),
    boosts=((1.0, 1.0), (2.0, 1.0), (1.0, 2.0)),
    max_workers=3,
  )
  outcomes = ExperimentRunner(cfg).run()
  assert [o.configuration for o in outcomes] == list(iter_configurations(cfg))
  assert all(o.status == 'ok' for o in outcomes)


def test_near_equal_boosts_get_distinct_ids():
  exact = Configuration(TokenizerVariant.ENGLISH, ScoringVariant.BM25, 1.0, 1.0)
  close = Configuration(
    TokenizerVariant.ENGLISH, ScoringVariant.BM25, 1.0000001, 1.0
  )
  assert exact.combo_id == 'EnglishAnalyzer_BM25_t1_c1'
  assert close.combo_id == 'EnglishAnalyzer_BM25_t1p0000001_c1'


def test_repeated_boost_entries_yield_one_configuration(tmp_path, collection):
  cfg = _sweep(
    tmp_path,
    collection,
    tokenizers=(TokenizerVariant.ENGLISH,),
    boosts=((1.0, 1.0), (1, 1), (1.0000001, 1.0), (1.5, 1)),
  )
  combos = list(iter_configurations(cfg))
  assert [c.boost_tag for c in combos] == ['t1_c1', 't1p0000001_c1', 't1p5_c1']
  paths = [artifact_paths(cfg, c) for c in combos]
  assert len({p.index_dir for p in paths}) == 3
  assert len({p.results for p in paths}) == 3
  assert len({p.report for p in paths}) == 3


def test_concurrent_sweep_with_close_boosts_keeps_artifacts_apart(
  tmp_path, collection
):
  cfg = _sweep(
    tmp_path,
    collection,
    tokenizers=(TokenizerVariant.ENGLISH,),
    boosts=((1.0, 1.0), (1, 1), (1.0000001, 1.0), (2.0, 1.0)),
    max_workers=3,
  )
  outcomes = ExperimentRunner(cfg).run()
  assert len(outcomes) == 3
  assert all(o.status == 'ok' for o in outcomes)
  reports = {o.report_path for o in outcomes}
  assert len(reports) == 3
  assert len(aggregate(cfg.reports_dir)) == 3


def test_empty_tokenizer_axis_runs_nothing(tmp_path, collection):
  cfg = _sweep(tmp_path, collection, tokenizers=())
  assert ExperimentRunner(cfg).run() == []


def test_sweep_rejects_non_positive_counts(tmp_path, collection):
  with pytest.raises(ValueError):
    _sweep(tmp_path, collection, top_k=0)
  with pytest.raises(ValueError):
    _sweep(tmp_path, collection, max_workers=0)
