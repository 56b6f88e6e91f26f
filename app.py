import datetime

import streamlit as st
from dotenv import load_dotenv

# Ensure app uses the browser width by default
st.set_page_config(page_title="Star Factory", layout="wide")

# Guard print against BrokenPipeError in Streamlit teardown
import builtins as _builtins

def _safe_print(*args, **kwargs):
    try:
        _builtins.print(*args, **kwargs)
    except BrokenPipeError:
        pass
    except Exception:
        pass

print = _safe_print

from factory_env import ExperimentConfig, ExperimentSession, IntakeError, validate_participant_info
from factory_env.upload import CollectorTransport, FirebaseTransport, initialize_firebase
from star_factory_game import star_factory_game_page

load_dotenv()
CONFIG = ExperimentConfig.from_env()


def _firebase_secrets():
    try:
        return st.secrets if "firebase" in st.secrets else None
    except Exception:
        # No secrets.toml at all
        return None


@st.cache_resource
def get_transport():
    """Where finished sessions go: the collector endpoint if configured, else Firebase."""
    if CONFIG.collector_url:
        print(f"✅ Uploading sessions to collector {CONFIG.collector_url}")
        return CollectorTransport(CONFIG.collector_url)
    # Connects lazily; a failed initialization is retried on the next upload
    return FirebaseTransport(connect=lambda: initialize_firebase(_firebase_secrets()))


def save_session(session):
    with st.spinner("Saving your data..."):
        st.session_state.exported = session.export(get_transport())


def reset_all():
    """Clears all session_state so we go back to the consent screen cleanly."""
    for key in ("session", "exported", "consent", "consent_timestamp", "intake_error"):
        st.session_state.pop(key, None)
    st.session_state.phase = "consent"


# ------------------------------------------------------------
# SESSION-STATE INITIALIZATION
if "phase" not in st.session_state:
    st.session_state.phase = "consent"
if "consent" not in st.session_state:
    st.session_state.consent = None
if "consent_timestamp" not in st.session_state:
    st.session_state.consent_timestamp = None
if "session" not in st.session_state:
    st.session_state.session = None
if "exported" not in st.session_state:
    st.session_state.exported = False

# ------------------------------------------------------------
# Global CSS for desktop screens
st.markdown("""
<style>
body {
    background: #cfcfcf !important;
}

[data-testid="block-container"],
.block-container {
    width: clamp(360px, 70vw, 1200px) !important;
    max-width: clamp(360px, 70vw, 1200px) !important;
    margin-left: auto !important;
    margin-right: auto !important;
    padding: 2rem !important;
    background-color: #ececec !important;
    border-radius: 26px !important;
    box-shadow: 0 20px 40px rgba(0,0,0,0.08) !important;
}

button, .stButton > button {
    font-size: 1.15rem !important;
    min-height: 2.4rem !important;
    border-radius: 0.5rem !important;
}

button[data-testid="stBaseButton-primary"] {
    border-radius: 999px !important;
    border: 2px solid #0d47a1 !important;
    background: linear-gradient(135deg, #1e88e5 0%, #0d47a1 100%) !important;
    color: #ffffff !important;
    font-weight: 600 !important;
}
</style>
""", unsafe_allow_html=True)

# 0) CONSENT
if st.session_state.phase == "consent":
    st.title("Research Consent")
    st.markdown("**Please read the information below with your child. Participation is voluntary.**")
    with st.expander("Key Information", expanded=True):
        st.markdown("""
            - Your child is invited to play a short game about a star factory with three machines.
            - The game takes about 15 minutes. Your child drags stars, hats, lightbulbs and mushrooms into machine slots and answers a few questions.
            - We record which slots and machines your child uses, how long each choice takes, and any explanations typed in.
            - Risks: primarily the risk of breach of confidentiality. No direct benefits.
            - You may stop at any time with the Exit button.
        """)
    if CONFIG.irb_protocol_number:
        st.markdown(f"**IRB Protocol Number:** {CONFIG.irb_protocol_number}")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Accept", type="primary"):
            st.session_state.consent = True
            st.session_state.consent_timestamp = datetime.datetime.now().isoformat()
            st.session_state.phase = "intro"
            st.rerun()
    with col2:
        if st.button("Decline", type="secondary"):
            st.session_state.consent = False
            st.session_state.consent_timestamp = datetime.datetime.now().isoformat()
            st.session_state.phase = "no_consent"
            st.rerun()
    st.stop()

elif st.session_state.phase == "no_consent":
    st.title("Thank you for your time.")
    st.markdown("## You have declined to participate in the study.")
    st.stop()

# 1) PARTICIPANT INFO SCREEN
if st.session_state.phase == "intro":
    st.title("Welcome to the Star Factory")
    prolific_id = st.text_input("Prolific ID:", key="prolific_id")
    col_a, col_b = st.columns(2)
    with col_a:
        age = st.text_input("Age:", key="participant_age")
    with col_b:
        sex = st.text_input("Sex (F or M):", key="participant_sex")

    if st.button("Start", type="primary"):
        try:
            profile = validate_participant_info(prolific_id, age, sex)
        except IntakeError as e:
            st.warning(str(e))
            st.stop()
        st.session_state.session = ExperimentSession(profile, CONFIG)
        st.session_state.phase = "experiment"
        print(f"✅ Participant {profile.id} (age {profile.age}, {profile.sex}) starting")
        st.rerun()
    st.stop()

# 2) EXPERIMENT
elif st.session_state.phase == "experiment":
    session = st.session_state.session
    if not session.finished:
        star_factory_game_page(session)
    if session.finished:
        save_session(session)
        st.session_state.phase = "end"
        st.rerun()

# 3) THANK YOU (or retry the upload)
elif st.session_state.phase == "end":
    session = st.session_state.session
    if st.session_state.exported:
        st.title("Thank you!")
        st.success("Data saved successfully!")
        st.balloons()
    else:
        st.error(f"Error saving data: {session.last_export_error}")
        if st.button("Try saving again", type="primary"):
            session.controller.finish()
            save_session(session)
            st.rerun()

    if st.button("Start over"):
        reset_all()
        st.rerun()
