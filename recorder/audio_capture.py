import logging
import struct
import threading
from typing import Callable

import pyaudiowpatch as pyaudio

import config

logger = logging.getLogger(__name__)

CHUNK_DURATION_MS = 100

# (pcm16 mono a config.SAMPLE_RATE, es_microfono_local)
ChunkCallback = Callable[[bytes, bool], None]


def to_mono(data: bytes, channels: int) -> bytes:
    if channels <= 1:
        return data
    samples = struct.unpack(f"<{len(data) // 2}h", data)
    mono = []
    for i in range(0, len(samples) - channels + 1, channels):
        frame_samples = samples[i : i + channels]
        mono.append(int(sum(frame_samples) / channels))
    return struct.pack(f"<{len(mono)}h", *mono)


def resample(data: bytes, source_rate: int, target_rate: int) -> bytes:
    if source_rate == target_rate:
        return data
    samples = struct.unpack(f"<{len(data) // 2}h", data)
    ratio = target_rate / source_rate
    new_len = int(len(samples) * ratio)
    if new_len <= 0:
        return b""
    resampled = [samples[min(int(i / ratio), len(samples) - 1)] for i in range(new_len)]
    return struct.pack(f"<{len(resampled)}h", *resampled)


class AudioCapture:
    """Captura loopback (participantes remotos) y microfono (usuario) en hilos.

    Cada bloque se entrega a on_chunk ya convertido a PCM16 mono; el llamador
    decide como pasarlo al event loop.
    """

    def __init__(self, on_chunk: ChunkCallback):
        self._on_chunk = on_chunk
        self._pa: pyaudio.PyAudio | None = None
        self._capturing = False
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    def _get_pa(self) -> pyaudio.PyAudio:
        if self._pa is None:
            self._pa = pyaudio.PyAudio()
        return self._pa

    def _find_loopback_device(self) -> dict | None:
        pa = self._get_pa()
        try:
            wasapi_info = pa.get_host_api_info_by_type(pyaudio.paWASAPI)
        except OSError:
            logger.warning("WASAPI no disponible")
            return None

        default_output = pa.get_device_info_by_index(wasapi_info["defaultOutputDevice"])
        for loopback in pa.get_loopback_device_info_generator():
            if default_output["name"] in loopback["name"]:
                return loopback

        # Fallback: cualquier dispositivo loopback
        return next(pa.get_loopback_device_info_generator(), None)

    def _find_mic_device(self) -> dict | None:
        pa = self._get_pa()
        try:
            return pa.get_default_input_device_info()
        except OSError:
            return None

    def _capture_stream(self, device_info: dict, is_user: bool):
        pa = self._get_pa()
        sample_rate = int(device_info["defaultSampleRate"])
        channels = max(1, int(device_info["maxInputChannels"]))
        chunk_size = max(1, int(sample_rate * CHUNK_DURATION_MS / 1000))

        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=channels,
                rate=sample_rate,
                input=True,
                input_device_index=device_info["index"],
                frames_per_buffer=chunk_size,
            )
        except OSError as e:
            logger.error("No se pudo abrir stream para %s: %s", device_info["name"], e)
            return

        try:
            while self._capturing:
                try:
                    data = stream.read(chunk_size, exception_on_overflow=False)
                except OSError as e:
                    logger.debug("Lectura de audio fallida (%s): %s", device_info["name"], e)
                    continue

                data = resample(to_mono(data, channels), sample_rate, config.SAMPLE_RATE)
                if data:
                    self._on_chunk(data, is_user)
        finally:
            stream.stop_stream()
            stream.close()

    def start(self, loopback_device_index: int | None = None,
              mic_device_index: int | None = None):
        with self._lock:
            if self._capturing:
                return

            pa = self._get_pa()
            if loopback_device_index is not None:
                loopback_info = pa.get_device_info_by_index(loopback_device_index)
            else:
                loopback_info = self._find_loopback_device()

            if mic_device_index is not None:
                mic_info = pa.get_device_info_by_index(mic_device_index)
            else:
                mic_info = self._find_mic_device()

            if not loopback_info and not mic_info:
                raise RuntimeError("No se encontro ningun dispositivo de audio")

            self._capturing = True
            self._threads = []
            for info, is_user in ((loopback_info, False), (mic_info, True)):
                if not info:
                    logger.warning("Sin dispositivo de %s", "microfono" if is_user else "loopback")
                    continue
                logger.info("%s: %s", "Microfono" if is_user else "Loopback", info["name"])
                t = threading.Thread(target=self._capture_stream, args=(info, is_user), daemon=True)
                t.start()
                self._threads.append(t)

    def stop(self):
        with self._lock:
            self._capturing = False
            threads, self._threads = self._threads, []
        for t in threads:
            t.join(timeout=5)

    def is_capturing(self) -> bool:
        return self._capturing

    def terminate(self):
        self.stop()
        if self._pa:
            self._pa.terminate()
            self._pa = None
