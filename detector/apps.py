from dataclasses import dataclass


@dataclass(frozen=True)
class MeetingApp:
    name: str
    process_names: tuple[str, ...]
    window_titles: tuple[str, ...]

    def matches(self, process_name: str, window_title: str) -> bool:
        process = process_name.lower()
        title = window_title.lower()
        return (
            any(p.lower() in process for p in self.process_names)
            and any(t.lower() in title for t in self.window_titles)
        )


@dataclass(frozen=True)
class ProcessRule:
    """Regla de respaldo: todos los procesos indicados deben estar corriendo."""

    name: str
    required_processes: tuple[str, ...]

    def matches(self, processes: list[str]) -> bool:
        running = "\n".join(processes).lower()
        return all(p.lower() in running for p in self.required_processes)


# El orden importa: gana la primera coincidencia
MEETING_APPS = (
    MeetingApp(
        name="Zoom",
        process_names=("zoom.us", "CptHost"),
        window_titles=("Zoom Meeting", "Zoom Webinar"),
    ),
    MeetingApp(
        name="Google Meet",
        process_names=("Google Chrome", "Arc", "Safari", "Firefox", "Microsoft Edge"),
        window_titles=("Meet -", "meet.google.com"),
    ),
    MeetingApp(
        name="Microsoft Teams",
        process_names=("Microsoft Teams", "Teams"),
        window_titles=("Microsoft Teams",),
    ),
    MeetingApp(
        name="Slack Huddle",
        process_names=("Slack",),
        window_titles=("Huddle",),
    ),
    MeetingApp(
        name="Discord",
        process_names=("Discord",),
        window_titles=("Voice Connected",),
    ),
)

FALLBACK_RULES = (
    ProcessRule(name="Zoom", required_processes=("zoom.us", "cpthost")),
    ProcessRule(name="Microsoft Teams", required_processes=("microsoft teams",)),
)


def match_windows(windows: list[tuple[str, str]],
                  registry: tuple[MeetingApp, ...] = MEETING_APPS) -> str | None:
    for process_name, window_title in windows:
        if not process_name or not window_title:
            continue
        for app in registry:
            if app.matches(process_name, window_title):
                return app.name
    return None


def match_processes(processes: list[str],
                    rules: tuple[ProcessRule, ...] = FALLBACK_RULES) -> str | None:
    for rule in rules:
        if rule.matches(processes):
            return rule.name
    return None
