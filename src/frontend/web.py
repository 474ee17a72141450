from __future__ import annotations
import argparse
from flask import Flask, request, jsonify, Response
from jqlive import Engine
from jqlive.errors import QueryError


def create_app(engine: Engine) -> Flask:
    """Flask app bound to one exploration session."""
    app = Flask(__name__)
    app.config["JQLIVE_ENGINE"] = engine

    def _engine() -> Engine:
        return app.config["JQLIVE_ENGINE"]

    # ---------- API ----------
    @app.get("/health")
    def health():
        return jsonify({"ok": True, "document": _engine().name})

    @app.get("/api/query")
    def api_query():
        f = request.args.get("filter", None, type=str)
        if f is None:
            return jsonify({"ok": False, "error": "missing 'filter'"}), 400
        # request threads go straight to the cache; the session's event loop stays untouched
        res = _engine().cache.execute(f)
        if res.ok:
            return jsonify({"ok": True, "output": res.raw, "error": None, "kind": None})
        return jsonify({"ok": False, "output": "", "error": str(res.error), "kind": res.error.kind})

    @app.get("/api/keys")
    def api_keys():
        path = request.args.get("path", ".", type=str)
        try:
            keys = _engine().cache.keys_at(path)
        except QueryError as exc:
            return jsonify({"ok": False, "keys": [], "error": str(exc), "kind": exc.kind})
        return jsonify({"ok": True, "keys": keys, "error": None})

    @app.get("/api/suggest")
    def api_suggest():
        f = request.args.get("filter", "", type=str)
        suggestions, ctx = _engine().autocomplete.suggest(f)
        return jsonify({
            "suggestions": suggestions,
            "context": {"path": ctx.path, "incomplete": ctx.incomplete, "start_pos": ctx.start_pos},
        })

    @app.get("/api/telemetry")
    def api_telemetry():
        summary = _engine().telemetry_summary()
        return jsonify({"enabled": summary is not None, "summary": summary})

    # ---------- UI ----------
    @app.get("/")
    def home():
        return Response(_PAGE, mimetype="text/html")

    return app


# A tiny SPA: CSS variables + minimal JS, no external deps.
# The page applies the same rule as the engine: a response is drawn only if
# its sequence number is still the newest one sent.
_PAGE = r"""
<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width,initial-scale=1" />
<title>jqlive • Flask UI</title>
<style>
:root{
  --bg:#0b0f14;
  --panel:#0f141b;
  --ink:#cfd8e3;
  --muted:#8a94a6;
  --accent:#6ee7ff;
  --border:#1c2530;
}
*{box-sizing:border-box}
html,body{height:100%}
body{
  margin:0; background:var(--bg); color:var(--ink);
  font:15px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Ubuntu,"Helvetica Neue",Arial;
}
.container{ max-width:1100px; margin:24px auto; padding:0 16px; }
.card{
  background:var(--panel); border:1px solid var(--border);
  border-radius:16px; padding:18px;
}
h1{ font-size:20px; margin:0 0 8px 0 }
.input input{
  width:100%; padding:12px 14px; border-radius:12px; border:1px solid var(--border);
  background:#0b1117; color:var(--ink); outline:none; font-size:16px;
}
.input input:focus{ border-color:var(--accent) }
.meta{ color:var(--muted); font-size:13px; margin-top:6px }
.panes{ display:grid; grid-template-columns:1fr 16rem; gap:12px; margin-top:12px }
pre{
  margin:0; padding:12px; min-height:20rem; max-height:70vh; overflow:auto;
  border:1px solid var(--border); border-radius:12px; background:#0b1117;
}
pre.err{ color:#ffb0b0 }
ul{ list-style:none; margin:0; padding:12px; border:1px solid var(--border); border-radius:12px }
li{ cursor:pointer; padding:2px 4px; border-radius:6px }
li:hover{ background:#0d131a; color:var(--accent) }
.mono{ font-family: ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, "Liberation Mono", monospace }
kbd{ background:#111825; border:1px solid var(--border); padding:1px 6px; border-radius:6px }
</style>
</head>
<body>
  <div class="container">
    <div class="card">
      <h1>jqlive</h1>
      <div class="input">
        <input id="f" class="mono" type="text" value="." autocomplete="off" autofocus />
      </div>
      <div class="meta"><span id="stats">Ready.</span> Tip: <kbd>Tab</kbd> takes the first suggestion.</div>
      <div class="panes">
        <pre id="out" class="mono"></pre>
        <ul id="keys" class="mono"></ul>
      </div>
    </div>
  </div>

<script>
const $ = (sel) => document.querySelector(sel);
const f = $("#f"), out = $("#out"), keys = $("#keys"), stats = $("#stats");

let t;          // debounce timer
let seq = 0;    // newest request
let ctx = null; // last autocomplete context

async function run(mySeq){
  const t0 = performance.now();
  const resp = await fetch(`/api/query?filter=${encodeURIComponent(f.value)}`);
  const data = await resp.json();
  if(mySeq !== seq) return;          // superseded
  const dt = Math.max(1, Math.round(performance.now() - t0));
  out.className = data.ok ? "mono" : "mono err";
  out.textContent = data.ok ? data.output : data.error;
  stats.textContent = data.ok ? `~${dt} ms` : `${data.kind} error`;
}

async function suggest(){
  const resp = await fetch(`/api/suggest?filter=${encodeURIComponent(f.value)}`);
  const data = await resp.json();
  ctx = data.context;
  keys.innerHTML = data.suggestions.map((k)=>`<li>${k.replaceAll("<","&lt;")}</li>`).join("");
}

function apply(key){
  if(!ctx) return;
  f.value = f.value.slice(0, ctx.start_pos) + key;
  seq += 1;
  run(seq);
  suggest();
  f.focus();
}

f.addEventListener("input", ()=>{
  seq += 1;
  const mySeq = seq;
  clearTimeout(t);
  t = setTimeout(()=>run(mySeq), 30);
  suggest();
});
f.addEventListener("keydown", (ev)=>{
  if(ev.key === "Tab"){
    ev.preventDefault();
    const first = keys.querySelector("li");
    if(first) apply(first.textContent);
  }
});
keys.addEventListener("click", (ev)=>{
  if(ev.target.tagName === "LI") apply(ev.target.textContent);
});
seq += 1; run(seq); suggest();
</script>
</body>
</html>
"""


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Run the Flask UI on top of a jqlive session")
    ap.add_argument("file", nargs="?", default=None, help="JSON file (default: stdin)")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=8000)
    ap.add_argument("--telemetry", action="store_true")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    engine = Engine.from_path(args.file, telemetry=args.telemetry or None, verbose=args.verbose)
    app = create_app(engine)
    try:
        app.run(host=args.host, port=args.port, debug=args.verbose)
    finally:
        engine.shutdown()
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
