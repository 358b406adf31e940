import io
import os
import threading

import pytest
from PIL import Image

from converter.conversion.service import ConversionService
from converter.engine import EngineManager, FFmpegError
from converter.errors import EngineUnavailable


class FakeEngine:
    """In-memory stand-in for TranscodingEngine that records every call."""

    def __init__(self, on_run=None, fail=None):
        self.files: dict[str, bytes] = {}
        self.written: list[str] = []
        self.deleted: list[str] = []
        self.runs: list[list[str]] = []
        self.closed = False
        self.on_run = on_run
        self.fail = fail
        self._log_listeners = []
        self._progress_listeners = []
        self._lock = threading.Lock()

    def _check_open(self):
        if self.closed:
            raise EngineUnavailable("Transcoding engine has been torn down")

    def write_file(self, name, data):
        self._check_open()
        with self._lock:
            self.files[name] = bytes(data)
            self.written.append(name)

    def read_file(self, name):
        self._check_open()
        if name not in self.files:
            raise FileNotFoundError(name)
        return self.files[name]

    def delete_file(self, name):
        self._check_open()
        if name not in self.files:
            raise FileNotFoundError(name)
        del self.files[name]
        self.deleted.append(name)

    def exists(self, name):
        return name in self.files

    def add_log_listener(self, listener):
        self._log_listeners.append(listener)

    def remove_log_listener(self, listener):
        self._log_listeners.remove(listener)

    def add_progress_listener(self, listener):
        self._progress_listeners.append(listener)

    def remove_progress_listener(self, listener):
        self._progress_listeners.remove(listener)

    def run(self, args):
        self._check_open()
        self.runs.append(list(args))
        if self.on_run:
            self.on_run(self, args)
        if self.closed:
            raise FFmpegError("ffmpeg killed", -9)
        if self.fail:
            raise FFmpegError(self.fail, 1, self.fail)
        for listener in list(self._log_listeners):
            listener(f"fake ffmpeg {' '.join(args)}")
        for listener in list(self._progress_listeners):
            listener(0.5)
        self.files[args[-1]] = b"OUT:" + args[-1].encode()
        for listener in list(self._progress_listeners):
            listener(1.0)

    def terminate(self):
        self.closed = True
        self.files.clear()


class FakeEngineFactory:
    def __init__(self, on_run=None, fail=None):
        self.on_run = on_run
        self.fail = fail
        self.created: list[FakeEngine] = []

    def __call__(self):
        engine = FakeEngine(on_run=self.on_run, fail=self.fail)
        self.created.append(engine)
        return engine

    @property
    def engine(self) -> FakeEngine:
        return self.created[-1]


def png_bytes(size=(32, 24), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


def noise_png_bytes(width=600, height=600) -> bytes:
    img = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def gif_bytes(frames=10, size=(16, 16)) -> bytes:
    images = [Image.new("RGB", size, ((i * 25) % 256, 255 - (i * 25) % 256, 0)) for i in range(frames)]
    buf = io.BytesIO()
    images[0].save(buf, format="GIF", save_all=True, append_images=images[1:], duration=100, loop=0)
    return buf.getvalue()


@pytest.fixture
def factory():
    return FakeEngineFactory()


@pytest.fixture
def service(factory):
    svc = ConversionService(engines=EngineManager(factory=factory), max_workers=4)
    yield svc
    svc.shutdown()
