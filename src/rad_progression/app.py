"""Streamlit workstation for building and looping chord progressions."""

from __future__ import annotations

import importlib.util
import sys
import time

if __package__ in {None, ""}:  # pragma: no cover - streamlit executes this file as a script
    # Derive the package context from the file location so relative imports work
    # for both a source checkout and an installed copy.
    from pathlib import Path

    _package_dir = Path(__file__).resolve().parent
    _search_root = str(_package_dir.parent)
    if _search_root not in sys.path:
        sys.path.insert(0, _search_root)

    __package__ = _package_dir.name
    _canonical_name = f"{__package__}.app"
    _spec = importlib.util.spec_from_file_location(_canonical_name, __file__)
    if _spec is not None:
        __spec__ = _spec
    sys.modules.setdefault(_canonical_name, sys.modules[__name__])

import plotly.graph_objects as go
import streamlit as st

from rad_progression.audio import export_wav, midi_to_audio, midi_to_bytes
from rad_progression.chords import ChordResolutionError
from rad_progression.config import DEFAULT_PROGRESSION, EXPORT_FILENAME, ProgressionSettings
from rad_progression.loops import PATTERN_KINDS
from rad_progression.timeline import (
    SegmentDescriptor,
    TimelineScheduler,
    ValidationError,
    dumps_sequence,
    loads_sequence,
)


SUBDIVISION_LABELS = {"1": "Whole", "2": "Half", "4": "Quarter", "8": "Eighth"}
PALETTE = ["#a855f7", "#f472b6", "#38bdf8", "#34d399", "#facc15", "#fb7185"]


def _initialise_state() -> None:
    if "settings" not in st.session_state:
        st.session_state.settings = ProgressionSettings.from_env()
    if "scheduler" not in st.session_state:
        scheduler = TimelineScheduler(settings=st.session_state.settings)
        scheduler.import_sequence(DEFAULT_PROGRESSION)
        st.session_state.scheduler = scheduler
    if "last_tick" not in st.session_state:
        st.session_state.last_tick = None
    if "preview" not in st.session_state:
        st.session_state.preview = None


def _render_css(wave_period: int) -> None:
    st.markdown(
        f"""
        <style>
        .wave {{
            height: 6px;
            border-radius: 3px;
            background: linear-gradient(90deg, #a855f7, #38bdf8, #a855f7);
            background-size: 200% 100%;
            animation: wave-slide {wave_period}s linear infinite;
        }}
        @keyframes wave-slide {{
            from {{ background-position: 0% 0%; }}
            to {{ background-position: 200% 0%; }}
        }}
        .segment-active {{ color: #facc15; font-weight: 700; }}
        </style>
        <div class="wave"></div>
        """,
        unsafe_allow_html=True,
    )


def _sync_transport(scheduler: TimelineScheduler) -> None:
    """Advance the transport by the wall-clock time elapsed since the last rerun."""

    scheduler.poll()
    now = time.monotonic()
    last = st.session_state.last_tick
    st.session_state.last_tick = now if scheduler.is_playing else None
    if scheduler.is_playing and last is not None:
        scheduler.advance_seconds(now - last)


def _tempo_panel(scheduler: TimelineScheduler) -> None:
    requested = st.sidebar.number_input(
        "Tempo (BPM)",
        value=scheduler.tempo,
        step=1,
        help="Values outside 10-200 BPM are clamped.",
    )
    if requested != st.session_state.get("tempo_input", scheduler.tempo):
        scheduler.request_tempo(requested)
    st.session_state.tempo_input = requested
    if scheduler.pending_tempo is not None:
        st.sidebar.caption(f"Applying {scheduler.pending_tempo} BPM…")


def _add_segment_form(scheduler: TimelineScheduler) -> None:
    settings: ProgressionSettings = st.session_state.settings
    with st.form("add-segment"):
        amount_col, single_col, chord_col, type_col = st.columns(4)
        amount = amount_col.text_input("Amount", value=settings.default_amount, max_chars=1)
        single = single_col.text_input("Single", value=settings.default_single, max_chars=1)
        chord = chord_col.text_input("Chord", value=settings.default_chord)
        pattern = type_col.selectbox("Type", PATTERN_KINDS, index=PATTERN_KINDS.index(settings.pattern_kind))
        submitted = st.form_submit_button("Add after active segment")
    if not submitted:
        return
    try:
        scheduler.insert_segment(SegmentDescriptor(amount=amount, single=single, chord=chord, type=pattern))
    except ValidationError as exc:
        st.error(str(exc))
    except ChordResolutionError as exc:
        st.warning(f"Chord skipped: {exc}")
    else:
        st.session_state.preview = None
        st.rerun()


def _segment_list(scheduler: TimelineScheduler) -> None:
    if not len(scheduler):
        st.info("The progression is empty. Add a chord to start looping.")
        return

    for item in scheduler.items:
        label_col, focus_col, remove_col = st.columns([6, 1, 1])
        subdivision = SUBDIVISION_LABELS.get(str(item.subdivision), f"1/{item.subdivision}")
        css = "segment-active" if item.position == scheduler.active_index else ""
        label_col.markdown(
            f"<span class='{css}'>{item.position + 1}. <b>{item.chord}</b> · {item.repeat_count} × "
            f"{subdivision} · {item.pattern_kind}</span>",
            unsafe_allow_html=True,
        )
        if focus_col.button("Focus", key=f"focus-{id(item)}"):
            scheduler.active_index = item.position
            st.rerun()
        if remove_col.button("Remove", key=f"remove-{id(item)}"):
            scheduler.remove_segment(item)
            st.session_state.preview = None
            st.rerun()


def _timeline_plot(scheduler: TimelineScheduler) -> go.Figure:
    fig = go.Figure()
    frame = scheduler.to_dataframe()
    if frame.empty:
        fig.add_annotation(text="No segments yet", showarrow=False, font=dict(color="#94a3b8", size=18))
        fig.update_layout(height=160, xaxis=dict(visible=False), yaxis=dict(visible=False))
        return fig

    for row in frame.itertuples():
        opacity = 1.0 if row.position == scheduler.active_index else 0.6
        fig.add_trace(
            go.Bar(
                x=[row.stop_seconds - row.start_seconds],
                y=["Progression"],
                base=[row.start_seconds],
                orientation="h",
                marker=dict(color=PALETTE[row.position % len(PALETTE)], opacity=opacity),
                text=[row.chord],
                hovertemplate="Chord: %{text}<br>Start: %{base:.2f}s<br>Length: %{x:.2f}s",
                showlegend=False,
            )
        )
    fig.update_layout(
        height=180,
        barmode="overlay",
        template="plotly_dark",
        xaxis_title="Seconds",
        plot_bgcolor="rgba(15,23,42,0.6)",
        paper_bgcolor="rgba(15,23,42,0)",
    )
    return fig


@st.fragment(run_every=0.5)
def _transport_panel() -> None:
    scheduler: TimelineScheduler = st.session_state.scheduler
    _sync_transport(scheduler)
    active = scheduler.active_item
    status = "Playing" if scheduler.is_playing else "Stopped"
    st.metric("Now sounding", active.chord if active else "-", status)
    st.plotly_chart(_timeline_plot(scheduler), use_container_width=True)


def _transport_controls(scheduler: TimelineScheduler) -> None:
    label = "Stop" if scheduler.is_playing else "Play"
    if st.button(label, type="primary"):
        scheduler.toggle()
        st.session_state.last_tick = time.monotonic() if scheduler.is_playing else None
        st.rerun()


def _import_export(scheduler: TimelineScheduler) -> None:
    import_col, export_col = st.columns(2)
    with import_col:
        uploaded = st.file_uploader("Import progression JSON", type=["json"], key="progression-upload")
        if uploaded is not None and st.button("Append imported segments"):
            try:
                descriptors = loads_sequence(uploaded.getvalue().decode("utf-8"))
            except (UnicodeDecodeError, ValidationError) as exc:
                st.error(f"Unable to import progression: {exc}")
            else:
                added = scheduler.import_sequence(descriptors)
                skipped = len(descriptors) - len(added)
                st.session_state.preview = None
                st.success(f"Imported {len(added)} segments" + (f" ({skipped} skipped)" if skipped else ""))
    with export_col:
        st.download_button(
            "Export progression JSON",
            data=dumps_sequence(scheduler.export_sequence()).encode("utf-8"),
            file_name=EXPORT_FILENAME,
            mime="application/json",
        )


def _preview(scheduler: TimelineScheduler) -> None:
    if not len(scheduler):
        return
    settings: ProgressionSettings = st.session_state.settings
    if st.button("Render preview"):
        midi = scheduler.to_pretty_midi()
        st.session_state.preview = (
            midi_to_bytes(midi),
            export_wav(midi_to_audio(midi, sample_rate=settings.sample_rate)),
        )
    if st.session_state.preview is not None:
        midi_bytes, wav_bytes = st.session_state.preview
        st.audio(wav_bytes, format="audio/wav")
        st.download_button("Download MIDI", midi_bytes, file_name="progression.mid", mime="audio/midi")


def main() -> None:
    st.set_page_config(page_title="RAD Progression", page_icon="🎹", layout="wide")

    _initialise_state()
    scheduler: TimelineScheduler = st.session_state.scheduler
    _tempo_panel(scheduler)
    _sync_transport(scheduler)
    _render_css(scheduler.wave_period)

    st.title("RAD Progression")
    _transport_controls(scheduler)
    _transport_panel()
    _add_segment_form(scheduler)
    _segment_list(scheduler)
    _import_export(scheduler)
    _preview(scheduler)


if __name__ == "__main__":  # pragma: no cover
    main()
