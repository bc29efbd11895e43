class MeetScribeError(Exception):
    pass


class StreamUnavailable(MeetScribeError):
    """No hay backend de transcripcion configurado."""


class StreamConnectionError(MeetScribeError, RuntimeError):
    """Fallo la conexion con el backend de transcripcion."""


class ProbeError(MeetScribeError):
    """La consulta de ventanas o procesos activos fallo."""
