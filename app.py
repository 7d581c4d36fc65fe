import streamlit as st
import cv2
import tempfile
import time
import logging
import os
import altair as alt

import config
from concentration import EngagementClassifier, analyze_frame, analyze_video
from detection import FaceLandmarkDetector
from errors import EmptyHistoryError, ModelLoadError
from fusion import LiveStats, MinuteAggregator, SessionHistory, record_summary, summarize_session
from overlay import draw_faces
from timeline import TimelineStore, export_csv, export_filename

config.configure_logging()
_log = logging.getLogger("engagement.app")

# Page Config
st.set_page_config(page_title="Classroom Engagement Dashboard", layout="wide")

# Initialize Session State
if "session_info" not in st.session_state:
    st.session_state.session_info = None
if "history" not in st.session_state:
    st.session_state.history = SessionHistory()
if "aggregator" not in st.session_state:
    st.session_state.aggregator = MinuteAggregator()
if "video_history" not in st.session_state:
    st.session_state.video_history = SessionHistory()


# ---------------------------
# MODELS / STORE
# ---------------------------
@st.cache_resource(show_spinner="Loading face analysis models...")
def load_classifier():
    return EngagementClassifier().load()


@st.cache_resource(show_spinner=False)
def load_landmarker():
    return FaceLandmarkDetector().load()


@st.cache_resource(show_spinner=False)
def load_store():
    return TimelineStore()


def load_models():
    """Returns (landmarker, classifier), or (None, None) if either failed."""
    try:
        return load_landmarker(), load_classifier()
    except ModelLoadError as e:
        _log.exception("Failed to load AI models")
        st.error(f"Could not load the AI models: {e}. Check the log for details and refresh the page.")
        return None, None


# ---------------------------
# RENDERING
# ---------------------------
def render_session_card(session):
    st.subheader("Observation")
    st.markdown(
        f"**Observer:** {session.name}  \n"
        f"**Subject:** {session.subject}  \n"
        f"**Date:** {session.date}"
    )


def render_live_metrics(placeholder, stats):
    with placeholder.container():
        st.metric("Students (live)", stats.person_count)
        st.caption("Detected in the camera right now")
        st.metric("Interested", f"{stats.interested_percentage}%")
        st.caption(f"{stats.interested_count} of {stats.person_count} students")
        st.metric("Not interested", f"{stats.uninterested_percentage}%")
        st.caption(f"{stats.uninterested_count} of {stats.person_count} students")


def interest_chart(history):
    df = history.to_frame().iloc[::-1].copy()
    df["Interested"] = df["Interested (%)"].str.rstrip("%").astype(int)
    return (
        alt.Chart(df)
        .mark_line(point=True, color="#4ade80")
        .encode(
            x=alt.X("Time:O", sort=None),
            y=alt.Y("Interested:Q", scale=alt.Scale(domain=[0, 100]), title="Interested (%)"),
            tooltip=["Time", "Average persons", "Interested (%)", "Not interested (%)"],
        )
    )


def render_history(placeholder, history):
    with placeholder.container():
        if not len(history):
            st.info("No data yet... entries appear here after 1 minute.")
            return
        st.dataframe(history.to_frame(), hide_index=True, use_container_width=True)
        st.altair_chart(interest_chart(history), use_container_width=True)


def render_export(placeholder, history, file_name, key):
    try:
        csv_data = export_csv(history)
    except EmptyHistoryError:
        csv_data = ""

    # key changes with every new minute so the button can be redrawn mid-run
    placeholder.download_button(
        "📥 Export CSV",
        data=csv_data,
        file_name=file_name,
        mime="text/csv",
        disabled=not csv_data,
        key=f"{key}_{len(history)}",
        on_click=lambda: st.toast(f"Exported {file_name}"),
    )


def read_frames(cap):
    while cap.isOpened():
        ret, frame = cap.read()
        if not ret: break
        yield frame


def process_video(video_path, classifier, progress_bar):
    """Runs the pipeline over a recorded video and writes the annotated copy."""
    cap = cv2.VideoCapture(video_path)
    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
    total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT)) or 1

    # Codec setup (H.264)
    output_path = os.path.join(tempfile.gettempdir(), "processed_result.mp4")
    fourcc = cv2.VideoWriter_fourcc(*'avc1')
    out = cv2.VideoWriter(output_path, fourcc, fps, (width, height))

    def write_frame(index, frame, analysis):
        if analysis is not None:
            draw_faces(frame, analysis)
        out.write(frame)
        if (index + 1) % 50 == 0:
            progress_bar.progress(min((index + 1) / total_frames, 1.0))

    # fresh landmarker: the video clock starts again at zero
    try:
        with FaceLandmarkDetector() as detector:
            history = analyze_video(read_frames(cap), fps, detector, classifier, on_frame=write_frame)
    finally:
        cap.release()
        out.release()

    progress_bar.progress(1.0)
    return history, output_path


# ---------------------------
# MAIN APP
# ---------------------------
store = load_store()

st.sidebar.title("Session")
with st.sidebar.form("session_form"):
    observer = st.text_input("Observer")
    subject = st.text_input("Subject")
    session_date = st.date_input("Date")
    submitted = st.form_submit_button("Start session")

if submitted:
    if not observer.strip() or not subject.strip():
        st.sidebar.error("Observer and subject are required.")
    else:
        try:
            st.session_state.session_info = store.create_session(
                observer.strip(), subject.strip(), session_date.isoformat()
            )
            st.session_state.history = SessionHistory()
            st.session_state.aggregator = MinuteAggregator()
            st.session_state.video_history = SessionHistory()
        except Exception as e:
            _log.exception("Could not create session")
            st.sidebar.error(f"Could not create session: {e}")

if not store.enabled:
    st.sidebar.caption("Firestore is not configured, the timeline is kept in this browser session only.")

mode = st.sidebar.radio("Mode", ["Live Camera", "Upload Video"])

session = st.session_state.session_info
st.title("Engagement Analysis Dashboard")
st.caption("Real-time classroom engagement analysis")

if session is None:
    st.info("Fill in the observation details in the sidebar and press **Start session**.")
    st.stop()

# ---------------------------
# LIVE CAMERA MODE
# ---------------------------
if mode == "Live Camera":
    history = st.session_state.history
    aggregator = st.session_state.aggregator

    file_name = export_filename(session)
    _, header_right = st.columns([4, 1])
    export_placeholder = header_right.empty()

    video_col, side_col = st.columns([2, 1])
    with video_col:
        st.subheader("Live video analysis")
        run_live = st.checkbox("Start/Stop Live Camera")
        frame_window = st.image([])

    if not run_live and aggregator.pending:
        # camera was stopped mid-minute
        record = record_summary(history, aggregator, time.monotonic())
        if record is not None:
            store.save_async(session.id, record)

    render_export(export_placeholder, history, file_name, key="export_live")
    with side_col:
        render_session_card(session)
        metrics_placeholder = st.empty()
        render_live_metrics(metrics_placeholder, LiveStats())

    st.subheader("History (summary every 1 minute)")
    history_placeholder = st.empty()
    render_history(history_placeholder, history)

    if run_live:
        landmarker, classifier = load_models()
        if landmarker is None:
            st.stop()

        cap = cv2.VideoCapture(config.CAMERA_INDEX)
        if not cap.isOpened():
            cap.release()
            st.error("Camera access is required. Allow access to the camera to use this feature.")
            st.stop()

        aggregator.restart(time.monotonic())
        try:
            while run_live:
                ret, frame = cap.read()
                if not ret:
                    st.error("Camera not found.")
                    break

                now = time.monotonic()
                faces = landmarker.detect(frame, now * 1000)
                analysis = analyze_frame(frame, faces, classifier)
                draw_faces(frame, analysis)

                aggregator.add(analysis)
                if aggregator.due(now):
                    record = record_summary(history, aggregator, now)
                    if record is not None:
                        store.save_async(session.id, record)
                        render_history(history_placeholder, history)
                        render_export(export_placeholder, history, file_name, key="export_live")

                render_live_metrics(metrics_placeholder, LiveStats.from_analysis(analysis))

                # Convert for Streamlit display
                frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                frame_window.image(frame)
        finally:
            cap.release()

    elif len(history) > 0:
        # --- STOPPED: SESSION REPORT ---
        summary = summarize_session(history)
        st.divider()
        c1, c2, c3 = st.columns(3)
        c1.metric("Minutes recorded", summary["Minutes"])
        c2.metric("Average interested", f"{summary['Average_Interested_Pct']}%")
        c3.metric("Overall verdict", summary["Final_Verdict"])

# ---------------------------
# UPLOAD VIDEO MODE
# ---------------------------
elif mode == "Upload Video":
    uploaded_file = st.file_uploader("Upload Lecture Video (MP4)", type=["mp4", "avi"])

    if uploaded_file is not None:
        st.info("Video Uploaded.")

        if st.button("🚀 Process Video Now"):
            try:
                classifier = load_classifier()
            except ModelLoadError as e:
                _log.exception("Failed to load engagement model")
                st.error(f"Could not load the AI models: {e}. Check the log for details and refresh the page.")
                st.stop()

            suffix = os.path.splitext(uploaded_file.name)[1]
            with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tfile:
                tfile.write(uploaded_file.getvalue())
                video_path = tfile.name

            try:
                history, output_path = process_video(video_path, classifier, st.progress(0))
            except ModelLoadError as e:
                _log.exception("Failed to load face landmarker")
                st.error(f"Could not load the AI models: {e}. Check the log for details and refresh the page.")
                st.stop()
            finally:
                os.unlink(video_path)

            st.session_state.video_history = history
            st.success("Processing Complete!")
            st.subheader("📽️ Processed Video")
            st.video(output_path)

    video_history = st.session_state.video_history
    if len(video_history) > 0:
        st.divider()
        summary = summarize_session(video_history)
        c1, c2 = st.columns(2)
        with c1:
            st.metric("Average interested", f"{summary['Average_Interested_Pct']}%")
            st.metric("Verdict", summary["Final_Verdict"])
        with c2:
            render_export(st.empty(), video_history, export_filename(session, prefix="video-report"),
                          key="export_video")
        render_history(st.empty(), video_history)
