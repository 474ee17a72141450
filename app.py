# app.py
# CustomTkinter desktop host for jqlive (dark theme).
# - Open a JSON file; the document is parsed on a background thread.
# - Live filter entry: every keystroke goes through the engine's debounce.
# - Tab / Up / Down / Enter / Escape drive key suggestions.
# - Output, suggestion and event log panes.

from __future__ import annotations
import threading
from typing import Any, Callable, Optional

import tkinter.filedialog as fd
import tkinter.messagebox as mb
import customtkinter as ctk

# Project imports (ensure PYTHONPATH=src)
from jqlive import Engine
from jqlive.loader import load_document
from jqlive.render import strip_ansi


# -------------------- small helpers --------------------

def shorten_path(p: str, max_chars: int = 60) -> str:
    """Shorten long paths neatly for labels."""
    if len(p) <= max_chars:
        return p
    keep = max_chars // 2 - 3
    return p[:keep] + "..." + p[-keep:]


class TkScheduler:
    """
    Runs engine callbacks on the Tk main loop.

    call_soon_threadsafe is called from worker threads and relies on
    `after` being safe off the main thread, which needs a Tcl built with
    thread support (the default for python.org and distro builds).
    """

    def __init__(self, widget: ctk.CTk) -> None:
        self._widget = widget

    def call_later(self, delay: float, callback: Callable[[], None]) -> Any:
        return self._widget.after(max(0, int(delay * 1000)), callback)

    def call_soon_threadsafe(self, callback: Callable[[], None]) -> None:
        self._widget.after(0, callback)


# -------------------- main app --------------------

class JqLiveApp(ctk.CTk):
    """Dark-themed window that loads one JSON document and filters it live."""

    OUTPUT_ROWS = 40
    H_STEP = 8

    def __init__(self) -> None:
        super().__init__()

        ctk.set_appearance_mode("dark")
        ctk.set_default_color_theme("blue")

        self.title("jqlive")
        self.geometry("1000x700")
        self.minsize(820, 560)

        # State
        self.engine: Optional[Engine] = None
        self._loading_thread: Optional[threading.Thread] = None
        self._poll_after_id: Optional[str] = None
        self._current_source_label: str = "No document loaded"

        # Fonts
        self.font_title = ctk.CTkFont(size=18, weight="bold")
        self.font_label = ctk.CTkFont(size=13)
        self.font_mono = ctk.CTkFont(family="Cascadia Mono, Menlo, Consolas, Courier New", size=13)

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(3, weight=1)  # output + suggestions
        self.grid_rowconfigure(4, weight=0)  # log

        self._build_header()
        self._build_source_bar()
        self._build_filter()
        self._build_panes()
        self._build_log()

        self._set_status("Ready")
        self.protocol("WM_DELETE_WINDOW", self._on_close)

    # --------- UI sections ---------

    def _build_header(self) -> None:
        header = ctk.CTkFrame(self, corner_radius=10)
        header.grid(row=0, column=0, sticky="ew", padx=12, pady=(12, 6))
        header.grid_columnconfigure(0, weight=1)
        ctk.CTkLabel(header, text="jqlive", font=self.font_title).grid(row=0, column=0, sticky="w", padx=12, pady=10)

    def _build_source_bar(self) -> None:
        bar = ctk.CTkFrame(self, corner_radius=10)
        bar.grid(row=1, column=0, sticky="ew", padx=12, pady=6)
        bar.grid_columnconfigure(1, weight=1)

        ctk.CTkButton(bar, text="Open JSON", command=self._choose_file).grid(row=0, column=0, padx=(12, 6), pady=10)

        self.lbl_source = ctk.CTkLabel(bar, text=self._current_source_label, anchor="w", font=self.font_label)
        self.lbl_source.grid(row=0, column=1, sticky="ew", padx=6, pady=10)

        self.progress = ctk.CTkProgressBar(bar, mode="indeterminate", determinate_speed=1.2)
        self.progress.grid(row=0, column=2, sticky="e", padx=(0, 6), pady=10)

        self.lbl_status = ctk.CTkLabel(bar, text="Status: —", anchor="e")
        self.lbl_status.grid(row=0, column=3, sticky="e", padx=12, pady=10)

    def _build_filter(self) -> None:
        box = ctk.CTkFrame(self, corner_radius=10)
        box.grid(row=2, column=0, sticky="ew", padx=12, pady=6)
        box.grid_columnconfigure(1, weight=1)

        ctk.CTkLabel(box, text="Filter:", font=self.font_label).grid(row=0, column=0, sticky="w", padx=12, pady=10)

        self.entry_filter = ctk.CTkEntry(box, font=self.font_mono)
        self.entry_filter.grid(row=0, column=1, sticky="ew", padx=(6, 12), pady=10)
        self.entry_filter.insert(0, ".")
        self.entry_filter.bind("<KeyRelease>", self._on_filter_changed)
        self.entry_filter.bind("<Tab>", self._on_tab)
        self.entry_filter.bind("<Return>", self._on_enter)
        self.entry_filter.bind("<Escape>", self._on_escape)
        self.entry_filter.bind("<Up>", lambda _e: self._on_cycle(-1))
        self.entry_filter.bind("<Down>", lambda _e: self._on_cycle(1))
        self.entry_filter.bind("<Shift-Left>", lambda _e: self._on_hscroll(-self.H_STEP))
        self.entry_filter.bind("<Shift-Right>", lambda _e: self._on_hscroll(self.H_STEP))

    def _build_panes(self) -> None:
        frame = ctk.CTkFrame(self, corner_radius=10)
        frame.grid(row=3, column=0, sticky="nsew", padx=12, pady=6)
        frame.grid_columnconfigure(0, weight=1)
        frame.grid_columnconfigure(1, weight=0)
        frame.grid_rowconfigure(1, weight=1)

        ctk.CTkLabel(frame, text="Output", font=self.font_label).grid(row=0, column=0, sticky="w", padx=12, pady=(10, 2))
        self.lbl_keys = ctk.CTkLabel(frame, text="Available keys", font=self.font_label)
        self.lbl_keys.grid(row=0, column=1, sticky="w", padx=12, pady=(10, 2))

        self.txt_output = ctk.CTkTextbox(frame, wrap="none", font=self.font_mono)
        self.txt_output.grid(row=1, column=0, sticky="nsew", padx=(12, 6), pady=(0, 12))
        self.txt_output.bind("<MouseWheel>", self._on_wheel)
        self.txt_output.bind("<Button-4>", lambda _e: self._on_vscroll(-3))
        self.txt_output.bind("<Button-5>", lambda _e: self._on_vscroll(3))
        self.txt_output.configure(state="disabled")

        self.txt_keys = ctk.CTkTextbox(frame, width=220, wrap="none", font=self.font_mono)
        self.txt_keys.grid(row=1, column=1, sticky="nsew", padx=(6, 12), pady=(0, 12))
        self.txt_keys.configure(state="disabled")

        self._set_text(self.txt_output, "(open a JSON document to begin)")

    def _build_log(self) -> None:
        frame = ctk.CTkFrame(self, corner_radius=10)
        frame.grid(row=4, column=0, sticky="nsew", padx=12, pady=(6, 12))
        frame.grid_columnconfigure(0, weight=1)

        ctk.CTkLabel(frame, text="Event log", font=self.font_label).grid(row=0, column=0, sticky="w", padx=12, pady=(10, 2))
        self.txt_log = ctk.CTkTextbox(frame, height=110, wrap="word", font=ctk.CTkFont(size=12))
        self.txt_log.grid(row=1, column=0, sticky="nsew", padx=12, pady=(0, 12))
        self._log("GUI ready. Open a JSON file to begin.")

    # --------- loading (threaded) ---------

    def _choose_file(self) -> None:
        path = fd.askopenfilename(title="Open JSON document", filetypes=[("JSON", "*.json"), ("All files", "*.*")])
        if not path:
            return
        if self._loading_thread and self._loading_thread.is_alive():
            mb.showinfo("Loading", "A document is already loading. Please wait.")
            return

        self._current_source_label = shorten_path(path)
        self.lbl_source.configure(text=self._current_source_label)
        self._set_status("Loading…")
        self.progress.start()

        self._loading_thread = threading.Thread(target=self._load_worker, args=(path,), daemon=True)
        self._loading_thread.start()

    def _load_worker(self, path: str) -> None:
        try:
            document, name = load_document(path)
        except (OSError, ValueError) as exc:
            self.after(0, lambda: self._on_load_error(exc))
            return
        self.after(0, lambda: self._on_load_ok(document, name))

    def _on_load_ok(self, document: Any, name: str) -> None:
        self.progress.stop()
        if self.engine is not None:
            self.engine.shutdown()
        self.engine = Engine(document, scheduler=TkScheduler(self), name=name)
        self.engine.set_filter(self.entry_filter.get() or ".")
        self.engine.start()
        self._set_status(f"Loaded {name}")
        self._log(f"Document ready: {name}")
        self.entry_filter.focus_set()
        self._schedule_poll()

    def _on_load_error(self, exc: Exception) -> None:
        self.progress.stop()
        self._set_status("Error while loading document.")
        self._log(f"ERROR: {exc!r}")
        mb.showerror("Load error", f"Failed to load document:\n{exc}")

    # --------- input ---------

    def _on_filter_changed(self, ev=None) -> None:
        if self.engine is None:
            return
        if ev is not None and ev.keysym in ("Tab", "Return", "Escape", "Up", "Down", "Shift_L", "Shift_R"):
            return
        text = self.entry_filter.get()
        if text != self.engine.filter:
            self.engine.cancel_suggestions()
            self.engine.set_filter(text)
            self._refresh_keys()

    def _on_tab(self, _ev=None) -> str:
        if self.engine is None:
            return "break"
        if self.engine.suggestions:
            self._on_cycle(1)
            return "break"
        self.engine.tab()
        self._replace_entry(self.engine.filter)
        self._refresh_keys()
        return "break"

    def _on_cycle(self, step: int) -> str:
        if self.engine is not None and self.engine.suggestions:
            self.engine.cycle_suggestion(step)
            self._refresh_keys()
        return "break"

    def _on_enter(self, _ev=None) -> str:
        if self.engine is None:
            return "break"
        if self.engine.suggestions:
            self._replace_entry(self.engine.accept_suggestion())
            self._log(f"Accepted: {self.engine.filter}")
        elif self.engine.commit() is not None:
            self._log(f"Committed: {self.engine.filter}")
        self._refresh_keys()
        return "break"

    def _on_escape(self, _ev=None) -> str:
        if self.engine is not None:
            self.engine.cancel_suggestions()
            self._refresh_keys()
        return "break"

    def _on_hscroll(self, dx: int) -> str:
        if self.engine is not None:
            self.engine.scroll_horizontal(dx)
            self._refresh_output()
        return "break"

    def _on_vscroll(self, dy: int) -> str:
        if self.engine is not None:
            self.engine.scroll(dy)
            self._refresh_output()
        return "break"

    def _on_wheel(self, ev) -> str:
        return self._on_vscroll(-3 if ev.delta > 0 else 3)

    # --------- drawing ---------

    def _schedule_poll(self) -> None:
        # redraw from engine state; results land through TkScheduler callbacks
        self._refresh_output()
        self._refresh_keys()
        self._poll_after_id = self.after(50, self._schedule_poll)

    def _refresh_output(self) -> None:
        eng = self.engine
        if eng is None:
            return
        width = max(20, self.txt_output.winfo_width() // max(1, self.font_mono.measure("0")))
        rows = [strip_ansi(r).rstrip() for r in eng.visible_lines(width, self.OUTPUT_ROWS)]
        text = "\n".join(rows).rstrip("\n")
        if not eng.result.ok:
            self._set_status(f"{eng.result.error.kind} error")
        elif eng.running:
            self._set_status("Running…")
        else:
            self._set_status(f"{len(eng.lines):,} lines")
        self._set_text(self.txt_output, text)

    def _refresh_keys(self) -> None:
        eng = self.engine
        if eng is None:
            return
        if eng.suggestions:
            self.lbl_keys.configure(text="Suggestions")
            lines = [("> " if i == eng.selected_idx else "  ") + s for i, s in enumerate(eng.suggestions)]
        else:
            self.lbl_keys.configure(text="Matching keys" if eng.context.incomplete else "Available keys")
            lines = eng.panel_keys()
        self._set_text(self.txt_keys, "\n".join(lines))

    # --------- misc UI helpers ---------

    def _replace_entry(self, text: str) -> None:
        self.entry_filter.delete(0, "end")
        self.entry_filter.insert(0, text)
        self.entry_filter.icursor("end")

    def _set_status(self, text: str) -> None:
        self.lbl_status.configure(text=f"Status: {text}")

    @staticmethod
    def _set_text(box: ctk.CTkTextbox, text: str) -> None:
        box.configure(state="normal")
        box.delete("0.0", "end")
        if text:
            box.insert("end", text)
        box.configure(state="disabled")

    def _log(self, msg: str) -> None:
        self.txt_log.insert("end", msg + "\n")
        self.txt_log.see("end")

    # --------- lifecycle ---------

    def _on_close(self) -> None:
        if self._poll_after_id is not None:
            self.after_cancel(self._poll_after_id)
        if self.engine is not None:
            summary = self.engine.telemetry_summary()
            if summary:
                print(summary)
            self.engine.shutdown()
        self.destroy()


if __name__ == "__main__":
    app = JqLiveApp()
    app.mainloop()
