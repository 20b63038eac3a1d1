HTML = """
<!doctype html>
<html>
<head>
  <meta charset="utf-8"/>
  <title>netmon-live</title>
  <style>
    body { background:#14181d; color:#e8eaed; font-family: ui-monospace,Menlo,Consolas,monospace; }
    table { border-collapse: collapse; width: 100%; }
    td, th { padding: 2px 8px; text-align: left; white-space: nowrap; }
    tr.cur { background:#2a2f36; }
    tr.added { color:#7ee787; }
    tr.removed { color:#ff7b72; }
    #err { color:#ff7b72; } #status { color:#f2cc60; }
  </style>
</head>
<body>
  <h3>netmon-live <small>__VERSION__</small> <span id="upd"></span></h3>
  <div id="crumb"></div>
  <div id="err"></div><div id="status"></div>
  <table><thead id="head"></thead><tbody id="rows"></tbody></table>
  <script>
  const COLS = {
    "Processes": ["name","pids","connection_count","established_count","listen_count","bytes_sent","bytes_recv"],
    "Connections": ["protocol","local_display","remote_display","state"],
    "All Connections": ["pid","process_name","protocol","local_display","remote_display","state"],
  };
  async function refresh() {
    const r = await fetch("/api/view", { cache: "no-store" });
    const v = await r.json();
    const cols = COLS[v.level] || [];
    document.getElementById("crumb").textContent =
      v.level + (v.process_name ? " / " + v.process_name : "") +
      (v.filter ? "  filter: " + v.filter : "") + "  every " + v.refresh_interval + "s";
    document.getElementById("err").textContent = v.error || "";
    document.getElementById("status").textContent = v.kill_prompt || v.status || "";
    document.getElementById("upd").textContent = v.update_available ? "(update " + v.update_available + ")" : "";
    // process names and hostnames are untrusted: text nodes only
    const hr = document.createElement("tr");
    cols.forEach(c => hr.appendChild(cell("th", c)));
    document.getElementById("head").replaceChildren(hr);
    document.getElementById("rows").replaceChildren(...v.rows.map((row, i) => {
      const tr = document.createElement("tr");
      if (i === v.cursor) tr.classList.add("cur");
      if (row.change === "added" || row.change === "removed") tr.classList.add(row.change);
      cols.forEach(c => tr.appendChild(cell("td", row[c])));
      return tr;
    }));
  }
  function cell(tag, value) {
    const el = document.createElement(tag);
    el.textContent = value == null ? "" : String(value);
    return el;
  }
  const KEYS = { ArrowUp: "up", ArrowDown: "down", ArrowLeft: "left", ArrowRight: "right",
                 Enter: "enter", Escape: "esc", Backspace: "backspace", " ": "space" };
  document.addEventListener("keydown", async (e) => {
    const key = KEYS[e.key] || (e.key.length === 1 ? e.key : null);
    if (!key) return;
    e.preventDefault();
    await fetch("/api/key", { method: "POST", headers: {"Content-Type": "application/json"},
                              body: JSON.stringify({ key }) });
    refresh();
  });
  setInterval(refresh, 1000);
  refresh();
  </script>
</body>
</html>
"""

def render_html(version: str = "dev") -> str:
    return HTML.replace("__VERSION__", version)
