"""Sending the finished session table to where the lab collects it."""

import datetime
import os

import firebase_admin
import requests
from firebase_admin import credentials, db
from requests.exceptions import RequestException


class ExportError(RuntimeError):
    """The upload failed; the message is the raw error text shown to the participant."""


def _valid_database_url(url):
    """Realtime Database URL must contain firebaseio.com or firebasedatabase.app, not the Console page."""
    if not url or not isinstance(url, str):
        return False
    return "firebaseio.com" in url or "firebasedatabase.app" in url


def firebase_credentials_from(secrets=None, environ=None):
    """Return (credentials dict, database url) from Streamlit secrets or FIREBASE_* variables, else (None, None)."""
    environ = os.environ if environ is None else environ
    if secrets is not None and "firebase" in secrets:
        fb = secrets["firebase"]
        firebase_credentials = {
            "type": "service_account",
            "project_id": fb["project_id"],
            "private_key_id": fb["private_key_id"],
            "private_key": fb["private_key"].replace("\\n", "\n"),
            "client_email": fb["client_email"],
            "client_id": fb["client_id"],
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            "client_x509_cert_url": fb["client_x509_cert_url"],
            "universe_domain": "googleapis.com",
        }
        return firebase_credentials, fb.get("database_url") or fb.get("databaseURL")
    if environ.get("FIREBASE_PROJECT_ID"):
        firebase_credentials = {
            "type": "service_account",
            "project_id": environ.get("FIREBASE_PROJECT_ID"),
            "private_key_id": environ.get("FIREBASE_PRIVATE_KEY_ID"),
            "private_key": (environ.get("FIREBASE_PRIVATE_KEY") or "").replace("\\n", "\n"),
            "client_email": environ.get("FIREBASE_CLIENT_EMAIL"),
            "client_id": environ.get("FIREBASE_CLIENT_ID"),
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            "client_x509_cert_url": environ.get("FIREBASE_CLIENT_X509_CERT_URL"),
            "universe_domain": "googleapis.com",
        }
        return firebase_credentials, environ.get("FIREBASE_DATABASE_URL")
    return None, None


def initialize_firebase(secrets=None, environ=None):
    """Initialize the Firebase app once per process and return a root reference, or None."""
    if firebase_admin._apps:
        print("✅ Firebase already initialized")
        return db.reference()
    try:
        firebase_credentials, database_url = firebase_credentials_from(secrets, environ)
        if firebase_credentials is None:
            print("❌ No Firebase credentials found in secrets or environment variables")
            return None
        if not _valid_database_url(database_url):
            print(f"❌ Not a Realtime Database URL: {database_url!r}")
            return None
        cred = credentials.Certificate(firebase_credentials)
        firebase_admin.initialize_app(cred, {"databaseURL": database_url})
        print("✅ Firebase initialized successfully")
        return db.reference()
    except Exception as e:
        print(f"❌ Firebase initialization failed: {e}")
        import traceback
        traceback.print_exc()
        return None


class FirebaseTransport:
    """Stores each upload under <participantID>/sessions/<timestamp id>.

    ``connect`` is retried on every send until it yields a database reference.
    """

    def __init__(self, db_ref=None, connect=None):
        self.db_ref = db_ref
        self.connect = connect

    def send(self, payload):
        if self.db_ref is None and self.connect is not None:
            self.db_ref = self.connect()
        if self.db_ref is None:
            raise ExportError("Firebase is not connected")
        participant_id = payload["participantID"]
        now = datetime.datetime.now()
        session_id = now.strftime("%Y%m%d_%H%M%S_%f")[:-3]
        try:
            self.db_ref.child(participant_id).child("sessions").child(session_id).set({
                **payload,
                "saved_at": now.isoformat(),
                "session_timestamp": now.timestamp(),
            })
        except Exception as e:
            raise ExportError(str(e)) from e
        print(f"✅ Saved session {session_id} for {participant_id} to Firebase")
        return session_id


class CollectorTransport:
    """POSTs the payload as JSON to the lab's collector endpoint."""

    def __init__(self, url, timeout=10, session=None):
        self.url = url
        self.timeout = timeout
        self.http = session or requests

    def send(self, payload):
        try:
            response = self.http.post(self.url, json=payload, timeout=self.timeout)
        except RequestException as e:
            raise ExportError(str(e)) from e
        if not response.ok:
            raise ExportError(response.text)
        print(f"✅ Posted {len(payload['data']) - 1} rows for {payload['participantID']} to collector")
        return response.status_code
