import asyncio
import logging
import socket
import sys
import threading

import requests
import uvicorn

import config
from db.database import Database
from detector.monitor import MeetingActivityMonitor
from detector.probe import SystemActivityProbe
from server.app import create_app
from session.controller import RecordingSessionController
from session.events import (
    EventBus,
    MeetingEnded,
    MeetingStarted,
    RecordingStarted,
    RecordingStopped,
    TranscriptionReady,
    TranscriptionStopped,
)
from session.services import configure_services
from tray.tray_icon import TrayIcon

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("meetscribe")


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No se encontro un puerto disponible entre {start} y {end}")


def main():
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)

    # Find available port
    try:
        port = find_available_port(config.PORT, config.PORT + 20)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Puerto %d en uso, usando %d", config.PORT, port)
    config.PORT = port

    # Initialize components
    db = Database(config.DB_PATH)
    bus = EventBus()
    controller = RecordingSessionController(db, bus)
    configure_services(db, controller)
    monitor = MeetingActivityMonitor(SystemActivityProbe(), bus)

    # Audio capture: los hilos de captura entregan los bloques al event loop
    server_loop: asyncio.AbstractEventLoop | None = None

    def on_chunk(data: bytes, is_user: bool):
        if server_loop is not None:
            server_loop.call_soon_threadsafe(controller.feed_audio, data, is_user)

    # Captura local solo en Windows (WASAPI loopback); en otras plataformas el
    # audio llega por el websocket /api/audio
    capture = None
    if sys.platform == "win32":
        from recorder.audio_capture import AudioCapture
        capture = AudioCapture(on_chunk)

    def start_capture(event: TranscriptionReady):
        nonlocal server_loop
        server_loop = asyncio.get_running_loop()
        server_loop.run_in_executor(
            None, capture.start, config.LOOPBACK_DEVICE_INDEX, config.MIC_DEVICE_INDEX,
        ).add_done_callback(_log_capture_error)

    def _log_capture_error(future):
        if future.exception() is not None:
            logger.error("No se pudo iniciar la captura de audio: %s", future.exception())

    def stop_capture(event: TranscriptionStopped):
        asyncio.get_running_loop().run_in_executor(None, capture.stop)

    if capture is not None:
        bus.subscribe(TranscriptionReady, start_capture)
        bus.subscribe(TranscriptionStopped, stop_capture)

    app = create_app(db, controller, monitor)

    # Toggle recording callback for tray
    def toggle_recording(title: str | None):
        base = f"http://{config.HOST}:{config.PORT}/api"
        if controller.current_status().is_recording:
            requests.post(f"{base}/recording/stop", timeout=30)
        else:
            response = requests.post(f"{base}/recording/start", json={"title": title}, timeout=30)
            if response.status_code >= 400:
                logger.error("No se pudo iniciar la grabacion: %s", response.json().get("detail"))

    server_config = uvicorn.Config(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="warning",
    )
    server = uvicorn.Server(server_config)

    def quit_app():
        logger.info("Cerrando MeetScribe...")
        server.should_exit = True

    tray = TrayIcon(on_toggle_recording=toggle_recording, on_quit=quit_app)
    bus.subscribe(MeetingStarted, lambda event: tray.on_meeting_detected(event.app_name))
    bus.subscribe(MeetingEnded, lambda event: tray.on_meeting_ended())
    bus.subscribe(RecordingStarted, lambda event: tray.on_recording_started(event.meeting_id, event.title))
    bus.subscribe(RecordingStopped, lambda event: tray.on_recording_stopped())

    server_thread = threading.Thread(target=server.run, daemon=True)
    server_thread.start()

    logger.info("MeetScribe iniciado en http://%s:%d", config.HOST, config.PORT)

    # Run tray icon on main thread (blocks until quit)
    try:
        tray.run()
    except KeyboardInterrupt:
        pass
    finally:
        quit_app()
        server_thread.join(timeout=30)
        if capture is not None:
            capture.terminate()
        db.close()


if __name__ == "__main__":
    main()
