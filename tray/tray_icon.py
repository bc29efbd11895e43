import logging
import webbrowser

import pystray
from PIL import Image, ImageDraw

import config

logger = logging.getLogger(__name__)

ICON_SIZE = 64

COLOR_IDLE = "#888888"
COLOR_DETECTED = "#f5a623"
COLOR_RECORDING = "#e94560"


def _create_icon_image(color: str, ring: bool = False) -> Image.Image:
    img = Image.new("RGBA", (ICON_SIZE, ICON_SIZE), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    margin = 8
    bounds = [margin, margin, ICON_SIZE - margin, ICON_SIZE - margin]
    if ring:
        draw.ellipse(bounds, outline=color, width=6)
    else:
        draw.ellipse(bounds, fill=color)
    return img


class TrayIcon:
    """Icono de bandeja: refleja la reunion detectada y la grabacion en curso.

    Los metodos on_* se llaman desde el EventBus (hilo del servidor); pystray
    admite actualizar icono y menu desde otro hilo.
    """

    def __init__(self, on_toggle_recording, on_quit):
        # on_toggle_recording(title | None)
        self._on_toggle_recording = on_toggle_recording
        self._on_quit = on_quit
        self._detected_app: str | None = None
        self._recording: tuple[int, str] | None = None
        self._icon: pystray.Icon | None = None

    @property
    def is_recording(self) -> bool:
        return self._recording is not None

    def _status_text(self) -> str:
        if self._recording:
            meeting_id, title = self._recording
            return f"Grabando #{meeting_id}: {title}"
        if self._detected_app:
            return f"Reunion detectada: {self._detected_app}"
        return "Sin reunion activa"

    def _current_image(self) -> Image.Image:
        if self._recording:
            return _create_icon_image(COLOR_RECORDING)
        if self._detected_app:
            return _create_icon_image(COLOR_DETECTED, ring=True)
        return _create_icon_image(COLOR_IDLE)

    def _build_menu(self):
        if self._recording:
            record_label = "Detener grabacion"
        elif self._detected_app:
            record_label = f"Grabar reunion de {self._detected_app}"
        else:
            record_label = "Iniciar grabacion"

        return pystray.Menu(
            pystray.MenuItem(self._status_text(), None, enabled=False),
            pystray.MenuItem(record_label, self._toggle_recording, default=True),
            pystray.MenuItem(
                "Ver reuniones",
                lambda: webbrowser.open(f"http://{config.HOST}:{config.PORT}/docs#/default"),
            ),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Salir", self._quit),
        )

    def _refresh(self):
        if not self._icon:
            return
        self._icon.icon = self._current_image()
        self._icon.title = f"MeetScribe - {self._status_text()}"
        self._icon.menu = self._build_menu()

    def _toggle_recording(self):
        title = None if self._recording else self._detected_app
        try:
            self._on_toggle_recording(title)
        except Exception as e:
            logger.error("Error alternando grabacion: %s", e)

    def _quit(self):
        try:
            self._on_quit()
        except Exception as e:
            logger.error("Error al salir: %s", e)
        if self._icon:
            self._icon.stop()

    # -- Eventos --

    def on_meeting_detected(self, app_name: str):
        self._detected_app = app_name
        self._refresh()
        # Solo se avisa: nunca se graba sin que el usuario lo pida
        if self._icon and not self._recording:
            self._icon.notify(
                f"Reunion detectada en {app_name}. Usa el menu para empezar a grabar.",
                "MeetScribe",
            )

    def on_meeting_ended(self):
        self._detected_app = None
        self._refresh()

    def on_recording_started(self, meeting_id: int, title: str):
        self._recording = (meeting_id, title)
        self._refresh()

    def on_recording_stopped(self):
        self._recording = None
        self._refresh()

    def run(self):
        self._icon = pystray.Icon(
            "MeetScribe",
            icon=self._current_image(),
            title="MeetScribe",
            menu=self._build_menu(),
        )
        self._icon.run()

    def stop(self):
        if self._icon:
            self._icon.stop()
