"""Structured run logging for configuration sweeps.

Every event is a dict: it is appended to a JSONL file and echoed to the
console, either as JSON or as a compact human-readable line.
"""

import json
import os
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class RunLogger:
  """Tee logger that writes JSON lines to a file and prints console lines."""

  path: str | None
  enabled: bool = True
  stdout_format: str = 'auto'  # "auto" | "json" | "pretty"
  max_text: int = 96
  _fh: Any | None = field(init=False, default=None)
  _t0: float = field(init=False, default_factory=time.time)
  _line_no: int = field(init=False, default=0)
  _use_color: bool = field(init=False, default=False)
  _use_pretty: bool = field(init=False, default=False)
  _lock: Any = field(init=False, default_factory=threading.Lock)

  def __post_init__(self) -> None:
    """Open the JSONL sink and decide the console mode."""
    if self.enabled and self.path:
      os.makedirs(os.path.dirname(self.path) or '.', exist_ok=True)
      self._fh = open(self.path, 'a', encoding='utf-8')

    if self.stdout_format == 'pretty':
      self._use_pretty = True
    elif self.stdout_format == 'json':
      self._use_pretty = False
    else:  # auto
      self._use_pretty = sys.stdout.isatty()

    self._use_color = (
      self._use_pretty
      and sys.stdout.isatty()
      and os.environ.get('NO_COLOR') is None
      and os.environ.get('TERM') not in {'dumb', None}
    )

  # ---------- Public API ----------

  def log(self, record: dict[str, Any]) -> None:
    """Emit one event to the JSONL file and the console."""
    if not self.enabled:
      return
    line_json = json.dumps(record, ensure_ascii=False)
    with self._lock:
      if self._fh:
        self._fh.write(line_json + '\n')
        self._fh.flush()
      if self._use_pretty:
        print(self._format_pretty_line(record))
      else:
        print(line_json)
      sys.stdout.flush()

  def issue(self, stage: str, message: str, **extra: Any) -> None:
    """Shortcut for tolerated input problems."""
    self.log({'event': 'parse_issue', 'stage': stage, 'message': message, **extra})

  def close(self) -> None:
    """Close file handle if open."""
    if self._fh:
      self._fh.close()
      self._fh = None

  # ---------- Pretty formatting ----------

  def _format_pretty_line(self, r: dict[str, Any]) -> str:
    self._line_no += 1
    t_rel = self._style(self._since_start(), 'grey')
    n = self._style(f'{self._line_no:04d}', 'grey')
    combo = r.get('combo')
    combo_txt = self._style(combo, 'cyan') if combo else ''

    event = r.get('event', 'info')
    if event == 'combo_start':
      body = f'▶ {combo_txt}'
    elif event == 'index_built':
      body = f'🗂  {combo_txt}  docs={r.get("docs")}  {r.get("elapsed_s", 0):.2f}s'
    elif event == 'results_written':
      body = (
        f'📝 {combo_txt}  {r.get("lines")} lines, '
        f'{r.get("queries")} queries → {r.get("path")}'
      )
    elif event == 'eval_ok':
      body = f'{self._style("✅", "green", bold=True)} {combo_txt}  {r.get("path")}'
    elif event in ('eval_error', 'build_error', 'query_error'):
      label = self._style(event.upper(), 'red', bold=True)
      where = f' q={r["query_id"]}' if 'query_id' in r else ''
      err = self._clip(str(r.get('error', 'unknown error')), self.max_text)
      body = f'💥 {label} {combo_txt}{where}  → {self._style(err, "red")}'
    elif event == 'parse_issue':
      msg = self._clip(str(r.get('message', '')), self.max_text)
      body = f'⚠️  {self._style(r.get("stage", "parse"), "yellow")}  {msg}'
    elif event == 'combo_done':
      status = r.get('status', '-')
      color = 'green' if status == 'ok' else 'red'
      body = f'■ {combo_txt}  {self._style(status, color, bold=True)}'
    elif event == 'interrupt':
      body = f'🛑  KeyboardInterrupt  {combo_txt}'
    else:
      body = f'ℹ️  {json.dumps(r, ensure_ascii=False)}'
    return f'{n} {t_rel} {body}'

  # ---------- Small helpers ----------

  def _since_start(self) -> str:
    """Format elapsed time since logger start."""
    dt = time.time() - self._t0
    if dt < 60:
      return f'+{dt:05.2f}s'
    m, s = divmod(int(dt), 60)
    return f'+{m:02d}m{s:02d}s'

  def _clip(self, text: str, width: int) -> str:
    """Truncate a long string with an ellipsis."""
    return text if len(text) <= width else text[: max(0, width - 1)] + '…'

  def _style(self, s: str, color: str, bold: bool = False) -> str:
    """Apply ANSI color/bold if enabled."""
    if not self._use_color:
      return s
    codes = {
      'grey': '90',
      'red': '31',
      'green': '32',
      'yellow': '33',
      'cyan': '36',
    }
    parts = []
    if bold:
      parts.append('1')
    c = codes.get(color)
    if c:
      parts.append(c)
    if not parts:
      return s
    return f'\033[{";".join(parts)}m{s}\033[0m'
