"""
Render loop: one thread that advances the time cursor, ticks the physics and
hands the resulting frame to a draw callback, once per display frame.
"""
from typing import Callable, Optional
import threading
import time

from .interaction import Camera, InteractionController
from .layout import LayoutEngine, LayoutFrame

DrawCallback = Callable[[LayoutFrame, Camera], None]


class RenderLoop(threading.Thread):
    def __init__(
        self,
        engine: LayoutEngine,
        controller: Optional[InteractionController] = None,
        draw: Optional[DrawCallback] = None,
        fps: float = 60.0,
    ):
        super().__init__(daemon=True)
        if fps <= 0:
            raise ValueError(f"fps must be positive, got {fps}")
        self.engine = engine
        self.controller = controller
        self.draw = draw
        self.interval = 1.0 / fps
        self.stop_flag = threading.Event()
        self.frames = 0

    def step(self, dt: float) -> LayoutFrame:
        """One frame: time cursor, then physics, then draw. Never interleaved."""
        if self.controller is not None:
            self.controller.advance(dt)
        self.engine.tick()
        frame = self.engine.frame()
        if self.draw is not None:
            camera = self.controller.camera if self.controller is not None else Camera()
            self.draw(frame, camera)
        self.frames += 1
        return frame

    def run(self):
        last = time.monotonic()
        while not self.stop_flag.is_set():
            now = time.monotonic()
            self.step(now - last)
            last = now
            spent = time.monotonic() - now
            self.stop_flag.wait(max(0.0, self.interval - spent))

    def stop(self, timeout: Optional[float] = None) -> None:
        self.stop_flag.set()
        if self.is_alive():
            self.join(timeout)
