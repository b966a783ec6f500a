"""Debounced, sequence-numbered recompute of the compositor and encoder.

The orchestrator never blocks the caller: a change schedules a recompute through
the injected scheduler, and the recompute runs on the injected executor. Newer
requests invalidate older ones by sequence number; running codec work is never
interrupted, its result is just discarded on arrival.
"""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from core.compositor import composite
from core.encoder import encode
from core.errors import ImageStudioError
from core.logger import get_logger
from core.state import OutputFormat, ProcessOptions, SourceImage

_logger = get_logger("pipeline")

INTERACTIVE_DELAY_MS = 10
SETTLE_DELAY_MS = 300


class ScheduledCall(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledCall: ...


class ThreadingScheduler:
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> ScheduledCall:
        timer = threading.Timer(max(0, delay_ms) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass(frozen=True)
class RenderedImage:
    data: bytes
    width: int
    height: int
    format: OutputFormat


@dataclass(frozen=True)
class RenderResult:
    seq: int
    options: ProcessOptions
    image: Optional[RenderedImage] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.image is not None


def render_image(source: SourceImage, options: ProcessOptions) -> RenderedImage:
    buffer = composite(source, options)
    data = encode(buffer, options.format, options.quality)
    return RenderedImage(data=data, width=buffer.width, height=buffer.height, format=options.format)


class PipelineOrchestrator:
    def __init__(
        self,
        source: SourceImage,
        executor: Optional[Executor] = None,
        scheduler: Optional[Scheduler] = None,
        on_result: Optional[Callable[[RenderResult], None]] = None,
        interactive_delay_ms: int = INTERACTIVE_DELAY_MS,
        settle_delay_ms: int = SETTLE_DELAY_MS,
        renderer: Callable[[SourceImage, ProcessOptions], RenderedImage] = render_image,
    ) -> None:
        self._source = source
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="imagestudio-render")
        self._scheduler = scheduler or ThreadingScheduler()
        self._on_result = on_result
        self._interactive_delay_ms = int(interactive_delay_ms)
        self._settle_delay_ms = int(settle_delay_ms)
        self._renderer = renderer

        self._lock = threading.Lock()
        # Held across the stale check and the callback so deliveries never reorder
        self._deliver_lock = threading.RLock()
        self._pending: Optional[ScheduledCall] = None
        self._pending_options: Optional[ProcessOptions] = None
        self._seq = 0
        self._applied_seq = 0
        self._latest: Optional[RenderResult] = None
        self._last_good: Optional[RenderResult] = None
        self._last_good_source: Optional[SourceImage] = None

    @property
    def source(self) -> SourceImage:
        return self._source

    def set_source(self, source: SourceImage) -> None:
        self._source = source

    @property
    def latest(self) -> Optional[RenderResult]:
        return self._latest

    @property
    def last_good(self) -> Optional[RenderResult]:
        return self._last_good

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def issued_seq(self) -> int:
        return self._seq

    def request(self, options: ProcessOptions, interactive: bool = False) -> None:
        delay = self._interactive_delay_ms if interactive else self._settle_delay_ms
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending_options = options
            self._pending = self._scheduler.call_later(delay, self._fire)
        _logger.debug("recompute scheduled in %dms (interactive=%s)", delay, interactive)

    def flush(self) -> None:
        """Fire a pending recompute right away instead of waiting for its timer."""
        with self._lock:
            if self._pending is None:
                return
            self._pending.cancel()
        self._fire()

    def cancel(self) -> None:
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = None
            self._pending_options = None

    def _fire(self) -> None:
        with self._lock:
            options = self._pending_options
            if options is None:
                return
            self._pending = None
            self._pending_options = None
            self._seq += 1
            seq = self._seq
            source = self._source
        _logger.debug("recompute #%d fired", seq)
        future = self._executor.submit(self._run, seq, options, source)
        future.add_done_callback(lambda f: self._on_done(f, seq, options, source))

    def _run(self, seq: int, options: ProcessOptions, source: SourceImage) -> RenderResult:
        try:
            image = self._renderer(source, options)
        except ImageStudioError as e:
            _logger.warning("recompute #%d failed: %s", seq, e)
            return RenderResult(seq=seq, options=options, error=e)
        return RenderResult(seq=seq, options=options, image=image)

    def _on_done(self, future: Future, seq: int, options: ProcessOptions, source: SourceImage) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            _logger.error("recompute #%d crashed: %r", seq, exc)
            result = RenderResult(seq=seq, options=options, error=exc)
        else:
            result = future.result()
        self._deliver(result, source)

    def _deliver(self, result: RenderResult, source: SourceImage) -> None:
        with self._deliver_lock:
            if result.seq <= self._applied_seq:
                _logger.debug("recompute #%d dropped (stale, #%d applied)", result.seq, self._applied_seq)
                return
            self._applied_seq = result.seq
            self._latest = result
            if result.ok:
                self._last_good = result
                self._last_good_source = source
            if self._on_result is not None:
                self._on_result(result)

    def current_result(self, options: ProcessOptions) -> Optional[RenderResult]:
        """The last good result if it was rendered from the current source with these options."""
        with self._deliver_lock:
            good = self._last_good
            if good is None or good.options != options or self._last_good_source is not self._source:
                return None
            return good

    def render_async(self, options: ProcessOptions) -> Future:
        """Render outside the debounce on the executor; resolves to a RenderResult.

        Does not touch sequence numbers, so previews in flight are unaffected.
        """
        source = self._source
        _logger.debug("one-off render submitted")
        return self._executor.submit(self._run, 0, options, source)

    def shutdown(self, wait: bool = False) -> None:
        self.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
