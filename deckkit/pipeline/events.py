"""
进度事件通道 - 单消费者、推送式的有序事件序列

职责：
1. 按发生顺序推送 ProgressEvent 给外部展示层（可选回调），事件携带当前进度
2. 同时记录在 BuildRun.events 中
3. QueueSink 供异步消费者使用（以 None 作为结束标记）

使用方式：
    sink = QueueSink()
    executor = PipelineExecutor(paths, sink=sink)
    # 另一线程: for event in sink: ...
"""

from __future__ import annotations

import logging
import queue
from typing import Callable, Iterator

from ..models import BuildRun, EventLevel, ProgressEvent

logger = logging.getLogger(__name__)

EventSink = Callable[[ProgressEvent], None]


class ProgressChannel:
    """进度事件通道"""

    def __init__(self, run: BuildRun | None = None, sink: EventSink | None = None):
        self.run = run
        self.sink = sink
        self._history: list[ProgressEvent] = []
        self._closed = False
        self.progress = 0

    @property
    def history(self) -> list[ProgressEvent]:
        return list(self._history)

    def advance(self, progress: int) -> None:
        """推进进度（只增不减）"""
        self.progress = max(self.progress, min(progress, 100))
        if self.run is not None:
            self.run.progress = self.progress

    def emit(self, stage: str, message: str, level: EventLevel = EventLevel.INFO) -> ProgressEvent:
        """推送事件"""
        event = ProgressEvent(stage=stage, message=message, level=level, progress=self.progress)
        self._history.append(event)
        if self.run is not None:
            self.run.events.append(event)
        if self.sink is not None and not self._closed:
            try:
                self.sink(event)
            except Exception:
                # 展示层故障不影响流水线控制流
                logger.exception(f"进度事件消费失败: [{stage}] {message}")
        return event

    def close(self) -> None:
        """结束通道（通知支持 close 的消费者）"""
        if self._closed:
            return
        self._closed = True
        close = getattr(self.sink, "close", None)
        if callable(close):
            close()


class QueueSink:
    """基于 queue.Queue 的事件消费者"""

    def __init__(self, maxsize: int = 0):
        self.queue: queue.Queue[ProgressEvent | None] = queue.Queue(maxsize=maxsize)

    def __call__(self, event: ProgressEvent) -> None:
        self.queue.put(event)

    def close(self) -> None:
        self.queue.put(None)

    def __iter__(self) -> Iterator[ProgressEvent]:
        while True:
            event = self.queue.get()
            if event is None:
                return
            yield event
