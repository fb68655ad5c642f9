"""Smoke tests for the pygame UI.

These tests verify that the application's main loop can initialise and
execute a handful of frames without crashing when the SDL dummy video
driver is used.  They do not check rendering correctness.
"""

from __future__ import annotations

import os

# Use the dummy drivers before importing pygame or the application
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")


def test_app_runs_headless() -> None:
    """Ensure the application can start and run a few frames headlessly."""
    from cognitive_bubbles.app import run

    exit_code = run(max_frames=3, seed=1)
    assert exit_code == 0


def test_ui_smoke_start_pick_restart_and_quit() -> None:
    import pygame

    from cognitive_bubbles.app import run
    from cognitive_bubbles.session import BubblesConfig

    keys = {
        1: pygame.K_SPACE,
        2: pygame.K_1,
        3: pygame.K_2,
        4: pygame.K_3,
        5: pygame.K_m,
        6: pygame.K_r,
        7: pygame.K_SPACE,
        8: pygame.K_ESCAPE,
    }

    def inject(frame: int) -> None:
        key = keys.get(frame)
        if key is not None:
            pygame.event.post(pygame.event.Event(pygame.KEYDOWN, {"key": key, "unicode": ""}))

    assert run(max_frames=40, event_injector=inject, config=BubblesConfig(total_rounds=2, round_seconds=3), seed=7) == 0


def test_ui_smoke_finished_screen_renders_review() -> None:
    import pygame

    from cognitive_bubbles.app import App, BubblesScreen
    from cognitive_bubbles.session import BubblesConfig, BubblesSession

    pygame.init()
    try:
        surface = pygame.display.set_mode((960, 540))
        app = App(surface=surface, font=pygame.font.Font(None, 36))
        session = BubblesSession(BubblesConfig(total_rounds=1, round_seconds=2), seed=12)

        class _Clock:
            def now(self) -> float:
                return 0.0

        screen = BubblesScreen(app, session=session, clock=_Clock())
        app.push(screen)

        app.handle_event(pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_SPACE, "unicode": ""}))
        rnd = session.current_round
        assert rnd is not None
        app.render()
        for i in rnd.correct_order:
            app.handle_event(pygame.event.Event(pygame.KEYDOWN, {"key": pygame.K_1 + i, "unicode": ""}))
        app.update()
        app.render()

        assert session.is_finished
        assert session.score == 1
    finally:
        pygame.quit()
