"""
jqlive - live jq exploration engine

Re-evaluates a jq filter against an in-memory JSON document as the user
types, without ever letting a slow, superseded run overwrite a newer result,
and suggests key names for the path being typed.

The package is the engine only; hosts (terminal CLI, Flask page, desktop
window) drive it through Engine and draw what it exposes.

Main pieces:
    QueryCache          compiled-program and key-list caches over the evaluator
    parse_context       filter text -> (path, incomplete token, insert offset)
    AutocompleteService key suggestions for the current context
    QueryOrchestrator   debounce, cancel and stale-result filtering
    RenderCache         bounded FIFO cache of coloured output lines
    LatencyTelemetry    optional keypress -> frame latency percentiles
    Engine              session wiring + view state

Example Usage:
    from jqlive import Engine

    eng = Engine.from_json('{"users": [{"name": "ada"}], "meta": {}}')
    try:
        print(eng.run(".users[0].name").raw)
        print(eng.autocomplete.suggest(".us"))
    finally:
        eng.shutdown()
"""

# src/jqlive/__init__.py
from .cache import QueryCache
from .context import parse_context
from .engine import Engine
from .errors import QueryError, ParseError, EvaluationError, Cancelled
from .evaluator import CancelToken, Evaluator, JqEvaluator
from .models import Context, Result
from .orchestrator import QueryOrchestrator
from .render import RenderCache
from .scheduler import EventLoop, Scheduler
from .suggest import AutocompleteService
from .telemetry import LatencyTelemetry, percentiles

__version__ = "1.0.0"
__all__ = [
    "Engine",
    "QueryCache",
    "parse_context",
    "AutocompleteService",
    "QueryOrchestrator",
    "RenderCache",
    "LatencyTelemetry",
    "percentiles",
    "EventLoop",
    "Scheduler",
    "CancelToken",
    "Evaluator",
    "JqEvaluator",
    "Context",
    "Result",
    "QueryError",
    "ParseError",
    "EvaluationError",
    "Cancelled",
]
