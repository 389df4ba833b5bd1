#!/usr/bin/env python3
"""
Power Hour: one drink a minute, sixty minutes
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

Desktop pacing timer. After you start, it plays a sound, flashes a new
background colour and shows a notification at the top of every minute,
counting down the drinks remaining until the hour is up.

The start time is saved, so closing and reopening the app resumes the run.

Usage:
    python power_hour.py
    python power_hour.py --reset     (forget a saved run)
    pythonw power_hour.py            (Windows, no console)
"""
from __future__ import annotations
import sys, platform
import argparse
import logging
import threading
from typing import Any, Callable, Optional

try:
    import tkinter as tk
except ImportError:
    print("Error: tkinter is required.")
    if platform.system() == "Linux":
        print("  sudo apt install python3-tk")
    sys.exit(1)

import pystray

from cue_services import Notifier, SoundCue, StartTimeStore, STATE_FILE
from hour_config import CONFIG_FILE, banner_lines, load_config, remember_window_position
from session_controller import SessionController, SessionState
from tray_icon import nice_random_color, render_tray_icon

logger = logging.getLogger("power_hour")

# ─── Platform ────────────────────────────────────────────────
IS_MAC = platform.system() == "Darwin"
IS_WIN = platform.system() == "Windows"
FONT = "Helvetica Neue" if IS_MAC else "Segoe UI" if IS_WIN else "DejaVu Sans"

TICK_MS = 1000
TOAST_DISMISS_MS = 4000
POSITION_SAVE_MS = 800     # debounce for saving the window position while dragging
APP_TITLE = "Power Hour"

C_TEXT = "#111827";  C_TEXT_DIM = "#374151"
C_CARD = "#1e293b";  C_CARD_TEXT = "#f1f5f9";  C_ACCENT2 = "#0ea5e9"
C_BTN = "#1d4ed8";   C_BTN_TEXT = "#ffffff"
C_START_BG = "#f1f5f9"

WARNING_TEXT = (
    "Sixty drinks in sixty minutes is a lot of alcohol.\n"
    "Use beer or something lighter, drink water, know your\n"
    "limits and never drive afterwards."
)


# ━━━ Notifications ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
class DesktopNotifier(Notifier):
    """Tray / toast notifications and the tray badge, driven from the Tk thread."""

    def __init__(self, app: "PowerHourApp"):
        self.app = app
        self.granted = False

    def request_permission(self, callback: Callable[[bool], None]) -> None:
        self.granted = bool(self.app.config.get("notifications_enabled", True))
        # Deliver asynchronously, like a platform permission prompt
        self.app.root.after(0, callback, self.granted)

    def schedule_notification(self, body_text: str, badge_count: int,
                              delay_seconds: float) -> None:
        if not self.granted:
            return
        self.app.root.after(int(delay_seconds * 1000), self._deliver, body_text, badge_count)

    def set_badge_count(self, count: int) -> None:
        self.app.update_badge(count)

    def _deliver(self, body_text: str, badge_count: int) -> None:
        tray = self.app.tray
        if tray is not None and getattr(tray, "HAS_NOTIFICATION", False):
            try:
                tray.notify(body_text, APP_TITLE)
                return
            except Exception as e:
                logger.warning("Tray notification failed: %s", e)
        self._show_toast(body_text, badge_count)

    def _show_toast(self, body_text: str, badge_count: int) -> None:
        root = self.app.root
        win = tk.Toplevel(root)
        win.overrideredirect(True)
        win.attributes("-topmost", True)
        try:
            win.attributes("-alpha", 0.95)
        except tk.TclError:
            pass
        win.configure(bg=C_CARD)

        sw, sh = win.winfo_screenwidth(), win.winfo_screenheight()
        w, h = 260, 90
        win.geometry(f"{w}x{h}+{sw-w-20}+{sh-h-60}")

        f = tk.Frame(win, bg=C_CARD, padx=18, pady=12)
        f.pack(fill="both", expand=True)
        tk.Label(f, text=APP_TITLE, font=(FONT, 11, "bold"),
                 fg=C_ACCENT2, bg=C_CARD).pack(anchor="w")
        tk.Label(f, text=body_text, font=(FONT, 22, "bold"),
                 fg=C_CARD_TEXT, bg=C_CARD).pack(anchor="w")

        def dismiss():
            try:
                win.destroy()
            except tk.TclError:
                pass
        win.after(TOAST_DISMISS_MS, dismiss)
        win.bind("<Button-1>", lambda e: dismiss())


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
class PowerHourApp:

    def __init__(self, config: dict[str, Any], store: StartTimeStore,
                 config_path: str = CONFIG_FILE):
        self.config = config
        self.config_path = config_path
        self.tray: Optional[pystray.Icon] = None
        self.badge = 0

        self.root = tk.Tk()
        self.root.title(APP_TITLE)
        self.root.configure(bg=C_START_BG)
        self.root.minsize(360, 420)
        if self.config.get("always_on_top"):
            self.root.attributes("-topmost", True)
        self._place_window()
        self.root.protocol("WM_DELETE_WINDOW", self._quit)
        self.root.bind_all("<Control-q>", lambda e: self._quit())
        self._position_save_id = None
        self.root.bind("<Configure>", self._on_configure)

        self.notifier = DesktopNotifier(self)
        sound = SoundCue(self.config.get("custom_sound_path", ""),
                         self.config.get("sound_enabled", True))
        self.controller = SessionController(store, self.notifier, sound)

        self._seen_cues = 0
        self._shown_state: Optional[SessionState] = None
        self._build_widgets()
        self._paint(C_START_BG)
        self.controller.subscribe(self._render)

        if self.config.get("show_tray", True):
            threading.Thread(target=self._run_tray, daemon=True).start()

        self._render(self.controller)
        self._tick()

    def run(self) -> None:
        self.root.mainloop()

    def _place_window(self) -> None:
        w, h = 420, 480
        sw, sh = self.root.winfo_screenwidth(), self.root.winfo_screenheight()
        pos = self.config.get("window_position")
        if pos:
            # Clamp to screen bounds
            x = max(0, min(int(pos[0]), sw - w))
            y = max(0, min(int(pos[1]), sh - h))
        else:
            x, y = (sw - w) // 2, (sh - h) // 2
        self.root.geometry(f"{w}x{h}+{x}+{y}")

    # ━━━ Widgets ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def _btn(self, p: tk.Frame, text: str, cmd: Callable) -> tk.Button:
        b = tk.Button(p, text=text, font=(FONT, 14, "bold"), bg=C_BTN, fg=C_BTN_TEXT,
                      relief="flat", padx=28, pady=8, cursor="hand2", command=cmd)
        b.pack(pady=(18, 0))
        return b

    def _caption(self, p: tk.Frame, text: str) -> tk.Label:
        lbl = tk.Label(p, text=text, font=(FONT, 11), fg=C_TEXT_DIM)
        lbl.pack()
        return lbl

    def _build_widgets(self) -> None:
        root = self.root
        self.frames: dict[SessionState, tk.Frame] = {}

        # Warning
        f = tk.Frame(root)
        tk.Label(f, text="Before you start", font=(FONT, 20, "bold"), fg=C_TEXT).pack(pady=(0, 12))
        tk.Label(f, text=WARNING_TEXT, font=(FONT, 11), fg=C_TEXT_DIM, justify="center").pack()
        self._btn(f, "I understand", self.controller.acknowledge_warning)
        self.frames[SessionState.SHOW_WARNING] = f

        # Before start
        f = tk.Frame(root)
        tk.Label(f, text="60 drinks · 60 minutes", font=(FONT, 20, "bold"), fg=C_TEXT).pack()
        self._caption(f, "A cue sounds at the top of every minute")
        self._btn(f, "Start", self.controller.start)
        self.frames[SessionState.BEFORE_START] = f

        # Started
        f = tk.Frame(root)
        self._caption(f, "Total Time")
        self.lbl_total = tk.Label(f, text="0:00", font=(FONT, 24), fg=C_TEXT)
        self.lbl_total.pack(pady=(0, 20))
        self._caption(f, "Time To Next Drink")
        self.lbl_next = tk.Label(f, text="60", font=(FONT, 96, "bold"), fg=C_TEXT)
        self.lbl_next.pack(pady=(0, 20))
        self._caption(f, "Drinks Remaining")
        self.lbl_remaining = tk.Label(f, text="60", font=(FONT, 24), fg=C_TEXT)
        self.lbl_remaining.pack()
        self.frames[SessionState.STARTED] = f

        # Ended
        f = tk.Frame(root)
        tk.Label(f, text="That's the hour!", font=(FONT, 26, "bold"), fg=C_TEXT).pack()
        self._caption(f, "Sixty minutes done. Drink some water.")
        self._btn(f, "Restart", self.controller.restart)
        self.frames[SessionState.ENDED] = f

    def _paint(self, color: str) -> None:
        """Set background on the window and every non-button widget."""
        self.root.configure(bg=color)
        stack = list(self.frames.values())
        while stack:
            w = stack.pop()
            if not isinstance(w, tk.Button):
                try:
                    w.configure(bg=color)
                except tk.TclError:
                    pass
            stack.extend(w.winfo_children())

    # ━━━ Rendering ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def _render(self, controller: SessionController) -> None:
        state = controller.state
        if state is not self._shown_state:
            if self._shown_state is not None:
                self.frames[self._shown_state].pack_forget()
            self.frames[state].pack(expand=True)
            self._shown_state = state
            self._update_tray_menu()

        if controller.cue_count != self._seen_cues:
            self._seen_cues = controller.cue_count
            if self.config.get("colorful_background", True):
                self._paint(nice_random_color())

        if state is SessionState.STARTED:
            r = controller.readout()
            self.lbl_total.config(text=r.total_time)
            self.lbl_next.config(text=str(r.seconds_to_next))
            self.lbl_remaining.config(text=str(r.units_remaining))

    def _tick(self) -> None:
        try:
            self.controller.on_tick()
        finally:
            self.root.after(TICK_MS, self._tick)

    # ━━━ Tray ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def update_badge(self, count: int) -> None:
        self.badge = count
        title = f"{APP_TITLE} ({count})" if count else APP_TITLE
        self.root.title(title)
        if self.tray is not None:
            try:
                self.tray.icon = render_tray_icon(count, dimmed=count == 0)
                self.tray.title = title
            except Exception as e:
                logger.debug("Tray icon update failed: %s", e)

    def _update_tray_menu(self) -> None:
        if self.tray is not None:
            try:
                self.tray.update_menu()
            except Exception as e:
                logger.debug("Tray menu update failed: %s", e)

    def _tray_start(self) -> None:
        if self.controller.state is SessionState.ENDED:
            self.controller.restart()
        else:
            self.controller.start()

    def _show_window(self) -> None:
        self.root.deiconify()
        self.root.lift()

    def _run_tray(self) -> None:
        menu = pystray.Menu(
            pystray.MenuItem("Show", lambda icon, item: self.root.after(0, self._show_window),
                             default=True),
            pystray.MenuItem(
                lambda item: "Restart" if self.controller.state is SessionState.ENDED else "Start",
                lambda icon, item: self.root.after(0, self._tray_start),
                enabled=lambda item: self.controller.state in (SessionState.BEFORE_START,
                                                               SessionState.ENDED)),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", lambda icon, item: self.root.after(0, self._quit)),
        )
        self.tray = pystray.Icon("power_hour", render_tray_icon(self.badge), APP_TITLE, menu)
        try:
            self.tray.run()
        except Exception as e:
            logger.warning("Tray icon unavailable: %s", e)
            self.tray = None

    def _on_configure(self, event) -> None:
        """Save the window position shortly after the user stops moving it."""
        if event.widget is not self.root:
            return
        if self._position_save_id:
            self.root.after_cancel(self._position_save_id)
        self._position_save_id = self.root.after(POSITION_SAVE_MS, self._save_position)

    def _save_position(self) -> None:
        self._position_save_id = None
        try:
            x, y = self.root.winfo_x(), self.root.winfo_y()
        except tk.TclError:
            return
        remember_window_position(self.config, x, y, self.config_path)

    def _quit(self) -> None:
        if self._position_save_id:
            self.root.after_cancel(self._position_save_id)
        self._save_position()
        if self.tray is not None:
            self.tray.stop()
        self.root.after(0, self.root.quit)


def _print_banner(cfg: dict[str, Any], store: StartTimeStore) -> None:
    try:
        print()
        for line in banner_lines(cfg, store.get_start_time()):
            print(line)
        print()
    except (UnicodeEncodeError, OSError):
        pass  # consoles that can't print


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Power Hour pacing timer")
    parser.add_argument("--reset", action="store_true", help="Forget a saved run before starting")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", default=CONFIG_FILE, help="Path to the config file")
    parser.add_argument("--state", default=STATE_FILE, help="Path to the saved start time")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="  [%(levelname)s] %(message)s")

    store = StartTimeStore(args.state)
    if args.reset:
        store.set_start_time(None)
        logger.info("Saved run cleared")
    config = load_config(args.config)
    _print_banner(config, store)

    PowerHourApp(config, store, args.config).run()


if __name__ == "__main__":
    main()
