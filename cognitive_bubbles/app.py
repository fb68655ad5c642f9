"""Pygame UI shell for the Cognitive Bubbles trainer.

One game screen: three bubbles per set, picked from lowest to highest value,
with a per-set countdown.  Deterministic generation, timing and scoring live
in ``expressions``, ``session`` and ``scheduler``; this module only renders
snapshots, forwards input and plays outcome cues.
"""

from __future__ import annotations

import logging
import math
import os
from array import array
from collections.abc import Callable, Mapping
from typing import Protocol

import pygame

from .clock import Clock, RealClock
from .cognitive_core import new_seed
from .results import review_rows
from .scheduler import IntervalTicker
from .session import BubblesConfig, BubblesSession, HistoryEntry, Outcome, SessionSnapshot

logger = logging.getLogger(__name__)

WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

_BG = (3, 9, 78)
_PANEL = (18, 28, 110)
_TEXT = (235, 235, 245)
_MUTED_TEXT = (160, 168, 200)
_BUBBLE = (46, 92, 170)
_BUBBLE_PICKED = (16, 150, 110)
_BADGE = (5, 120, 85)
_GREEN = (16, 185, 129)
_AMBER = (245, 158, 11)
_RED = (239, 68, 68)

_OUTCOME_COLOURS = {Outcome.CORRECT: _GREEN, Outcome.INCORRECT: _RED, Outcome.TIMED_OUT: _AMBER}

_PICK_KEYS = {
    pygame.K_1: 0,
    pygame.K_2: 1,
    pygame.K_3: 2,
    pygame.K_KP1: 0,
    pygame.K_KP2: 1,
    pygame.K_KP3: 2,
}


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, "").strip()
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def config_from_env(environ: Mapping[str, str] | None = None) -> tuple[BubblesConfig, bool, int | None]:
    """Read (config, muted, seed) from BUBBLES_* environment variables."""

    env = os.environ if environ is None else environ
    config = BubblesConfig(
        total_rounds=_env_int(env, "BUBBLES_TOTAL_ROUNDS", 15),
        round_seconds=_env_int(env, "BUBBLES_ROUND_SECONDS", 10),
    )
    muted = env.get("BUBBLES_MUTED", "1").strip().lower() not in ("0", "false", "no", "off")
    seed_raw = env.get("BUBBLES_SEED", "").strip()
    seed = None if seed_raw == "" else _env_int(env, "BUBBLES_SEED", 0)
    return config, muted, seed


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def update(self) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


class _OutcomeCuePlayer:
    """Pygame audio adapter for round outcome cues.

    Stays outside the deterministic core.  Registered as a session listener;
    playing a cue never blocks or fails the round transition.
    """

    _sample_rate = 22050
    _amp = 32767

    def __init__(self, *, muted: bool = True) -> None:
        self.muted = muted
        self._available = False
        self._sounds: dict[Outcome, pygame.mixer.Sound] = {}
        self._channel: pygame.mixer.Channel | None = None

        if os.environ.get("SDL_AUDIODRIVER", "").strip().lower() == "dummy":
            # Keep automated/headless runs silent and stable.
            return

        try:
            if pygame.mixer.get_init() is None:
                pygame.mixer.init(frequency=self._sample_rate, size=-16, channels=1, buffer=512)
            self._sounds = {
                Outcome.CORRECT: self._build_sound(((660.0, 0.09), (990.0, 0.14)), gain=0.35),
                Outcome.INCORRECT: self._build_sound(((180.0, 0.26),), gain=0.40),
                Outcome.TIMED_OUT: self._build_sound(((520.0, 0.10), (330.0, 0.18)), gain=0.32),
            }
            self._channel = pygame.mixer.Channel(0)
            self._available = True
        except pygame.error as exc:
            logger.warning("audio cues disabled: %s", exc)
            self._available = False

    @property
    def available(self) -> bool:
        return self._available

    def toggle_muted(self) -> None:
        self.muted = not self.muted

    def __call__(self, outcome: Outcome, entry: HistoryEntry) -> None:
        if self.muted or not self._available:
            return
        assert self._channel is not None
        self._channel.play(self._sounds[outcome])

    def _build_sound(self, notes: tuple[tuple[float, float], ...], *, gain: float) -> pygame.mixer.Sound:
        pcm = array("h")
        for freq, duration in notes:
            pcm.extend(self._render_tone_pcm(freq, duration, gain=gain))
            pcm.extend(array("h", [0] * int(self._sample_rate * 0.02)))
        return pygame.mixer.Sound(buffer=pcm.tobytes())

    def _render_tone_pcm(self, frequency_hz: float, duration_s: float, *, gain: float) -> array[int]:
        sample_count = max(1, int(self._sample_rate * duration_s))
        fade_n = max(1, int(self._sample_rate * 0.008))
        out = array("h")
        for idx in range(sample_count):
            envelope = 1.0
            if idx < fade_n:
                envelope = idx / float(fade_n)
            tail = sample_count - idx - 1
            if tail < fade_n:
                envelope = min(envelope, tail / float(fade_n))
            phase = (2.0 * math.pi * float(frequency_hz) * idx) / float(self._sample_rate)
            sample = math.sin(phase) * gain * max(0.0, envelope)
            out.append(int(max(-1.0, min(1.0, sample)) * self._amp))
        return out


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def update(self) -> None:
        if self._screens:
            self._screens[-1].update()

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


class BubblesScreen:
    """Game screen: renders session snapshots and forwards commands.

    Keys: 1/2/3 pick (again to deselect), Space start/pause, R restart,
    M mute, Esc quit.  Left click on a bubble picks it.
    """

    def __init__(
        self,
        app: App,
        *,
        session: BubblesSession,
        clock: Clock,
        cues: _OutcomeCuePlayer | None = None,
    ) -> None:
        self._app = app
        self._session = session
        self._ticker = IntervalTicker(session, clock=clock)
        self._cues = cues
        if cues is not None:
            session.add_listener(cues)
        self._bubble_rects: list[tuple[int, pygame.Rect]] = []
        self._title_font = pygame.font.Font(None, 42)
        self._bubble_font = pygame.font.Font(None, 48)
        self._small_font = pygame.font.Font(None, 22)

    @property
    def session(self) -> BubblesSession:
        return self._session

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)
        elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
            for index, rect in self._bubble_rects:
                if rect.collidepoint(event.pos):
                    self._session.pick(index)
                    break

    def _handle_key(self, key: int) -> None:
        if key in _PICK_KEYS:
            self._session.pick(_PICK_KEYS[key])
        elif key == pygame.K_SPACE:
            self._session.toggle_running()
        elif key == pygame.K_r:
            self._session.restart()
            self._ticker.reset()
        elif key == pygame.K_m:
            if self._cues is not None:
                self._cues.toggle_muted()
        elif key == pygame.K_ESCAPE:
            self._app.quit()

    def update(self) -> None:
        self._ticker.update()

    # -- Rendering ----------------------------------------------------------
    def render(self, surface: pygame.Surface) -> None:
        surface.fill(_BG)
        snap = self._session.snapshot()
        w, h = surface.get_size()

        title = self._title_font.render("Cognitive Bubbles", True, _TEXT)
        surface.blit(title, (32, 20))
        hint = self._small_font.render(
            "Pick lowest to highest. 1/2/3 pick, Space start/pause, R restart, M mute, Esc quit",
            True,
            _MUTED_TEXT,
        )
        surface.blit(hint, (32, 62))

        if snap.finished:
            self._bubble_rects = []
            self._render_results(surface, snap)
        else:
            self._render_timer(surface, snap, width=w)
            self._render_bubbles(surface, snap, width=w, height=h)

        status = self._small_font.render(self._session.status_text(), True, _TEXT)
        surface.blit(status, (32, h - 34))

    def _render_timer(self, surface: pygame.Surface, snap: SessionSnapshot, *, width: int) -> None:
        label = self._app.font.render(
            f"Set {snap.round_number} / {snap.total_rounds}    Time left: {snap.seconds_left}s",
            True,
            _TEXT,
        )
        surface.blit(label, (32, 92))

        bar = pygame.Rect(32, 130, width - 64, 12)
        pygame.draw.rect(surface, _PANEL, bar, border_radius=6)
        frac = snap.seconds_left / float(snap.round_seconds) if snap.round_seconds else 0.0
        colour = _RED if snap.seconds_left <= 3 else _AMBER if snap.seconds_left <= 6 else _GREEN
        fill = bar.copy()
        fill.width = int(bar.width * max(0.0, min(1.0, frac)))
        if fill.width > 0:
            pygame.draw.rect(surface, colour, fill, border_radius=6)

    def _render_bubbles(self, surface: pygame.Surface, snap: SessionSnapshot, *, width: int, height: int) -> None:
        self._bubble_rects = []
        count = len(snap.bubbles)
        if count == 0:
            return
        radius = max(40, min(110, (width - 64) // (count * 3)))
        cy = 160 + (height - 200 - 160) // 2 + radius // 2
        slot = (width - 64) / count

        for i, bubble in enumerate(snap.bubbles):
            cx = int(32 + slot * i + slot / 2)
            colour = _BUBBLE_PICKED if bubble.rank is not None else _BUBBLE
            if not snap.running:
                colour = tuple(int(c * 0.6) for c in colour)
            pygame.draw.circle(surface, colour, (cx, cy), radius)
            text = self._bubble_font.render(bubble.display, True, _TEXT)
            surface.blit(text, text.get_rect(center=(cx, cy)))

            if bubble.rank is not None:
                badge_c = (cx + int(radius * 0.72), cy - int(radius * 0.72))
                pygame.draw.circle(surface, _BADGE, badge_c, 16)
                rank = self._small_font.render(str(bubble.rank), True, _TEXT)
                surface.blit(rank, rank.get_rect(center=badge_c))

            key = self._small_font.render(f"[{bubble.index + 1}]", True, _MUTED_TEXT)
            surface.blit(key, key.get_rect(center=(cx, cy + radius + 18)))
            self._bubble_rects.append((bubble.index, pygame.Rect(cx - radius, cy - radius, radius * 2, radius * 2)))

    def _render_results(self, surface: pygame.Surface, snap: SessionSnapshot) -> None:
        font = self._app.font
        lines = [
            f"Completed. Final Score: {snap.score} / {snap.total_rounds}",
            f"Accuracy: {snap.accuracy_pct}%   Incorrect: {snap.incorrect}   Timed out: {snap.timeouts}",
            f"Time used: {snap.time_used_s}s of {snap.time_available_s}s   (R to play again)",
        ]
        y = 100
        for line in lines:
            surface.blit(font.render(line, True, _TEXT), (32, y))
            y += 34

        y += 8
        for row in review_rows(self._session):
            colour = _OUTCOME_COLOURS[row.outcome]
            head = self._small_font.render(f"Set {row.round_number}: {row.label}", True, colour)
            surface.blit(head, (32, y))
            body = self._small_font.render(f"{row.correct_order}    you: {row.picks}", True, _TEXT)
            surface.blit(body, (190, y))
            y += 20
            if y > surface.get_height() - 50:
                break


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: BubblesConfig | None = None,
    seed: int | None = None,
) -> int:
    env_config, muted, env_seed = config_from_env()
    cfg = config or env_config
    run_seed = seed if seed is not None else env_seed if env_seed is not None else new_seed()

    pygame.init()
    pygame.display.set_caption("Cognitive Bubbles")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)

    font = pygame.font.Font(None, 36)
    frame_clock = pygame.time.Clock()

    app = App(surface=surface, font=font)
    session = BubblesSession(cfg, seed=run_seed)
    app.push(BubblesScreen(app, session=session, clock=RealClock(), cues=_OutcomeCuePlayer(muted=muted)))

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            app.update()
            app.render()

            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            frame_clock.tick(TARGET_FPS)
    finally:
        pygame.quit()

    return 0
