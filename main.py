import logging
from pathlib import Path
from typing import Dict, List, Optional

import streamlit as st

# Local application imports
from vidgro.client import RewardLedger, ServiceCallError, ServiceClient
from vidgro.domain import TerminalReason
from vidgro.drivers.simulated_surface import SimulatedPlayerSurface
from vidgro.interfaces import IHostListener
from vidgro.repository import JsonBackend
from vidgro.scheduler import ManualScheduler
from vidgro.services import PlaybackController
from vidgro.settings import controller_settings, load_settings, save_settings
from vidgro.utils import completion_threshold, format_seconds_to_human_readable
from vidgro.video_queue import VideoQueue

# === CONSTANTS & CONFIGURATION ===
PAGE_TITLE = "VidGro Playback Bench"
PAGE_ICON = "🎬"
LOG_LIMIT = 40
DEMO_VIDEOS = [
    ("demo-1", "https://www.youtube.com/watch?v=dQw4w9WgXcQ", "Short clip", 30),
    ("demo-2", "https://youtu.be/9bZkp7q19f0", "Minute long", 60),
    ("demo-3", "jNQXAC9IVRw", "Ninety seconds", 90),
    ("demo-4", "https://www.youtube.com/embed/kJQP7kiw5Fk", "Two minutes", 120),
]
ERROR_CHOICES = {
    "None": None,
    "5 · HTML5 player error (transient)": 5,
    "101 · Not embeddable (permanent)": 101,
}

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("vidgro.bench")

# === INITIALIZATION ===
st.set_page_config(
    page_title=PAGE_TITLE,
    page_icon=PAGE_ICON,
    layout="centered",
    initial_sidebar_state="expanded"
)


class BenchHost(IHostListener):
    """Hosting screen: owns persistence of rewards and shows what the controller reports."""

    def __init__(self, ledger: RewardLedger, queue: VideoQueue, user_id: str):
        self.ledger = ledger
        self.queue = queue
        self.user_id = user_id
        self.ready = False
        self.current_time = 0.0
        self.log: List[str] = []
        self.last_reward: Optional[int] = None

    def record(self, line: str) -> None:
        self.log.insert(0, line)
        del self.log[LOG_LIMIT:]

    def on_ready_state_changed(self, ready: bool) -> None:
        self.ready = ready
        self.record(f"player {'ready' if ready else 'not ready'}")

    def on_progress(self, current_time: float) -> None:
        self.current_time = current_time

    def on_reward_eligible(self) -> None:
        video = self.queue.current()
        if video is None:
            return
        try:
            self.last_reward = self.ledger.award(self.user_id, video, self.current_time)
            self.record(f"+{self.last_reward} coins for {video.title}")
        except ServiceCallError as e:
            self.record(f"reward failed: {e}")

    def on_terminal(self, reason: TerminalReason, message: str) -> None:
        self.ready = False
        self.current_time = 0.0
        self.record(f"session ended: {reason.value} ({message})")


class Bench:
    """Wires the controller to the simulated widget, a local backend and a manual clock."""

    def __init__(self, settings: Dict):
        self.settings = settings
        self.backend = JsonBackend(Path(settings["catalog_file"]))
        if not self.backend.data["videos"]:
            for video_id, url, title, duration in DEMO_VIDEOS:
                self.backend.add_video(video_id, url, title, duration, owner_id="someone-else")

        config = controller_settings(settings)
        self.client = ServiceClient(settings["service_url"], settings["service_key"]).initialize(self.backend)
        self.queue = VideoQueue(self.client, settings["user_id"])
        ledger = RewardLedger(self.client, config.completion_tolerance_seconds)
        self.host = BenchHost(ledger, self.queue, settings["user_id"])
        self.scheduler = ManualScheduler()
        self.surface = SimulatedPlayerSurface(emit=self._deliver)
        self.controller = PlaybackController(
            self.surface, self.host, self.scheduler, self.queue, config)

    def _deliver(self, raw: str, generation: int) -> None:
        self.controller.handle_message(raw, generation=generation)

    def ensure_session(self) -> None:
        """Assigns the next queued video whenever the controller is idle."""
        if self.controller.session is not None:
            return
        if self.queue.remaining() == 0:
            self.queue.replenish()
        video = self.queue.current()
        if video is None:
            return
        self.surface.duration = video.duration_seconds
        self.controller.assign_video(video)
        self.host.record(f"assigned {video.title} ({video.youtube_url})")

    def run(self, seconds: int) -> None:
        for _ in range(seconds):
            self.surface.tick(1.0)
            self.scheduler.advance(1.0)
            self.ensure_session()


def get_bench() -> Bench:
    if 'bench' not in st.session_state:
        st.session_state.bench = Bench(load_settings())
    bench = st.session_state.bench
    bench.ensure_session()
    return bench


# === COMPONENT RENDERERS ===
def render_sidebar(bench: Bench):
    with st.sidebar:
        st.markdown("### Player")
        controller = bench.controller

        auto_advance = st.toggle("Auto-advance after reward", value=controller.auto_advance)
        if auto_advance != controller.auto_advance:
            controller.set_auto_advance(auto_advance)

        visible = st.toggle("Tab visible", value=controller.visible)
        if visible != controller.visible:
            controller.set_visible(visible)

        with st.expander("🧪 Simulated widget"):
            choice = st.selectbox("Fail on load with", list(ERROR_CHOICES))
            bench.surface.error_code = ERROR_CHOICES[choice]
            bench.surface.stalled = st.checkbox("Freeze progress", value=bench.surface.stalled)
            bench.surface.respond = st.checkbox("Widget responds", value=bench.surface.respond)
            if st.button("Send garbage message", use_container_width=True):
                bench._deliver("{not json", bench.surface.generation)
                st.rerun()

        with st.expander("⚙️ Preferences"):
            current = controller.settings
            max_retries = st.number_input("Max retries", min_value=0, max_value=5, value=current.max_retries)
            ratio = st.slider("Completion ratio", 0.5, 1.0, value=current.completion_ratio, step=0.01)
            if st.button("Save", use_container_width=True):
                bench.settings["controller"]["max_retries"] = int(max_retries)
                bench.settings["controller"]["completion_ratio"] = float(ratio)
                save_settings(bench.settings)
                logger.info("Saved controller preferences, rebuilding bench")
                del st.session_state['bench']
                st.rerun()

        st.metric("Balance", bench.backend.balance(bench.settings["user_id"]))


def render_session(bench: Bench):
    session = bench.controller.session
    if session is None:
        st.info("📭 No videos available. Add some to the catalog file to get started.")
        return

    title = session.video.title if session.video else session.video_id
    threshold = completion_threshold(session.target_duration_seconds,
                                     bench.controller.settings.completion_ratio,
                                     bench.controller.settings.completion_tolerance_seconds)
    progress = min(session.current_time_seconds / session.target_duration_seconds, 1.0)

    st.markdown(f"#### {title}")
    st.caption(f"{session.status.value.upper()} · attempt {session.retry_count + 1} · generation {session.generation}")
    st.progress(progress, text=(
        f"{format_seconds_to_human_readable(session.current_time_seconds)} / "
        f"{format_seconds_to_human_readable(session.target_duration_seconds)} "
        f"(reward at {threshold:.1f}s)"
    ))
    if session.reward_signaled:
        st.success("✓ Reward earned")

    c_play, c_skip, c_tick, c_run = st.columns(4)
    with c_play:
        if st.button("⏯ Play/Pause", use_container_width=True):
            bench.controller.toggle_play_pause()
            st.rerun()
    with c_skip:
        if st.button("⏭ Skip", use_container_width=True):
            bench.controller.skip()
            st.rerun()
    with c_tick:
        if st.button("+1s", use_container_width=True):
            bench.run(1)
            st.rerun()
    with c_run:
        if st.button("+10s", use_container_width=True):
            bench.run(10)
            st.rerun()


# === MAIN ENTRY POINT ===
def main():
    bench = get_bench()
    render_sidebar(bench)

    st.markdown(f"## {PAGE_TITLE}")
    st.caption(f"{bench.queue.remaining()} videos queued · clock {bench.scheduler.now:.1f}s")
    render_session(bench)

    st.markdown("##### Events")
    st.code("\n".join(bench.host.log) or "(nothing yet)", language=None)


if __name__ == "__main__":
    main()
