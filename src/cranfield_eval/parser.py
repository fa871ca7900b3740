"""Parsers for the Cranfield corpus, query, and relevance-judgment files.

The corpus and query files share one line grammar: `.I <id>` opens a record
and the single-token markers `.T`, `.A`, `.B`, `.W` select the field that the
following text lines accumulate into. Parsing is lenient by default:
structural problems are reported through `on_issue` and the offending record
is skipped instead of failing the whole file.
"""

from collections.abc import Callable
from pathlib import Path

from .analyzers import normalize
from .data import CorpusRecord, QueryRecord, RelevanceJudgment, TokenizerVariant
from .errors import FormatError

IssueHandler = Callable[[str], None]

SECTION_FIELDS = {
  '.T': 'title',
  '.A': 'author',
  '.B': 'bibliography',
  '.W': 'body',
}


def read_text(path: str | Path) -> str:
  """Read a collection file as UTF-8, replacing undecodable bytes."""
  return Path(path).read_text(encoding='utf-8', errors='replace')


def _record_id(line: str) -> str | None:
  """Return the id of a `.I` boundary line, or None for any other line."""
  if line == '.I':
    return ''
  if line.startswith('.I ') or line.startswith('.I\t'):
    return line[2:].strip()
  return None


class _RecordBuilder:
  """Accumulates one record's fields; each field is assigned at most once."""

  def __init__(self, record_id: str) -> None:
    self.id = record_id
    self.fields: dict[str, str] = {}

  def assign(self, name: str, lines: list[str], report: IssueHandler) -> None:
    if name in self.fields:
      report(f'record {self.id}: repeated {name} section ignored')
      return
    self.fields[name] = ' '.join(lines)

  def build(self) -> CorpusRecord:
    return CorpusRecord(id=self.id, **self.fields)


def parse_corpus(
  text: str, strict: bool = False, on_issue: IssueHandler | None = None
) -> list[CorpusRecord]:
  """Parse corpus text into records in a single forward pass.

  Args:
    strict: raise FormatError on empty or duplicate ids instead of skipping.
    on_issue: receives a message for every tolerated structural problem.

  Returns:
    One CorpusRecord per accepted `.I` marker, fields defaulting to ''.
  """

  def report(message: str) -> None:
    if strict:
      raise FormatError(message)
    if on_issue:
      on_issue(message)

  records: list[CorpusRecord] = []
  seen: set[str] = set()
  current: _RecordBuilder | None = None
  section: str | None = None
  buf: list[str] = []

  for line_no, raw in enumerate(text.splitlines(), 1):
    line = raw.strip()
    record_id = _record_id(line)
    if record_id is not None:
      if current is not None:
        if section is not None:
          current.assign(section, buf, report)
        records.append(current.build())
      current, section, buf = None, None, []
      if not record_id:
        report(f'line {line_no}: record marker without id skipped')
      elif record_id in seen:
        report(f'line {line_no}: duplicate record id {record_id} skipped')
      else:
        seen.add(record_id)
        current = _RecordBuilder(record_id)
    elif line in SECTION_FIELDS:
      # Markers before the first record have nothing to attach to.
      if current is not None and section is not None:
        current.assign(section, buf, report)
      section = SECTION_FIELDS[line]
      buf = []
    elif section is not None and line:
      buf.append(line)

  if current is not None:
    if section is not None:
      current.assign(section, buf, report)
    records.append(current.build())
  return records


def parse_queries(
  text: str,
  tokenizer: TokenizerVariant,
  on_issue: IssueHandler | None = None,
) -> list[QueryRecord]:
  """Parse the query file; ids are assigned 1, 2, ... in encounter order.

  Source ids are discarded. Only `.W` text is kept and it is normalized with
  the tokenizer before storage, so the result is tokenizer specific.
  """
  queries: list[QueryRecord] = []
  opened = False
  in_body = False
  buf: list[str] = []

  def finish() -> None:
    if buf:
      analyzed = normalize(' '.join(buf), tokenizer)
      queries.append(
        QueryRecord(id=str(len(queries) + 1), analyzed_text=analyzed)
      )
    elif opened and on_issue:
      on_issue(f'query after #{len(queries)} has no .W text, skipped')

  for raw in text.splitlines():
    line = raw.strip()
    if _record_id(line) is not None:
      finish()
      opened, in_body, buf = True, False, []
    elif line in SECTION_FIELDS:
      in_body = line == '.W'
    elif in_body and line:
      buf.append(line)

  finish()
  return queries


def load_qrels(
  text: str, on_issue: IssueHandler | None = None
) -> RelevanceJudgment:
  """Parse whitespace-separated judgments: qid, (unused), docid, grade.

  Lines with fewer than four columns are skipped.
  """
  qrels: RelevanceJudgment = {}
  short = 0
  for line_no, line in enumerate(text.splitlines(), 1):
    parts = line.split()
    if not parts:
      continue
    if len(parts) < 4:
      short += 1
      continue
    try:
      grade = int(parts[3])
    except ValueError:
      if on_issue:
        on_issue(f'line {line_no}: non-integer relevance grade {parts[3]!r}')
      continue
    qrels.setdefault(parts[0], {})[parts[2]] = grade
  if short and on_issue:
    on_issue(f'skipped {short} judgment lines with fewer than 4 columns')
  return qrels
