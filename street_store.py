import atexit
import logging
import os
import threading
import uuid

import firebase_admin
import requests
from firebase_admin import credentials, db, exceptions
from google.auth import exceptions as google_auth_exceptions

import config

logger = logging.getLogger(__name__)


class StreetStoreError(Exception):
    """Base class for failures while reading the street record."""


class MissingCredentialsError(StreetStoreError):
    """No usable service account to authenticate with."""


class AuthError(StreetStoreError):
    """The database rejected our credentials."""


class ConnectivityError(StreetStoreError):
    """The database could not be reached."""


def load_credential(path):
    """
    Loads a Firebase service account certificate from `path`.
    Raises MissingCredentialsError if the file is absent or not a valid
    service account.
    """
    if not os.path.exists(path):
        raise MissingCredentialsError(
            f"Missing service account file at {path}. "
            "Place your Firebase service account JSON there or set FIREBASE_CREDENTIAL_PATH."
        )
    try:
        return credentials.Certificate(path)
    except (ValueError, OSError) as e:
        raise MissingCredentialsError(f"Invalid service account file at {path}: {str(e)}") from e


class StreetRecordStore:
    """
    Reads the street record from a Firebase Realtime Database.

    Each store owns its own firebase_admin App, created on construction and
    released by close().
    """

    def __init__(self, credential, database_url, ref_path='/street'):
        self.ref_path = ref_path
        self._app = firebase_admin.initialize_app(
            credential,
            {'databaseURL': database_url},
            name=f"street-{uuid.uuid4().hex}",
        )
        logger.info(f"Connected street store to {database_url} ({ref_path})")

    @classmethod
    def from_config(cls):
        credential = load_credential(config.FIREBASE_CREDENTIAL_PATH)
        return cls(credential, config.FIREBASE_DATABASE_URL, config.STREET_REF_PATH)

    def fetch_street_record(self):
        """Fetches the current record, returning {} when the node is empty."""
        if self._app is None:
            raise StreetStoreError("Street store is closed")

        logger.info(f"Fetching {self.ref_path}")
        try:
            record = db.reference(self.ref_path, app=self._app).get()
        except (exceptions.UnauthenticatedError, exceptions.PermissionDeniedError,
                google_auth_exceptions.RefreshError) as e:
            logger.error(f"Authentication failed reading {self.ref_path}: {str(e)}")
            raise AuthError(str(e)) from e
        except ValueError as e:
            # Unparsable body; requests' JSONDecodeError is also a RequestException
            logger.error(f"Malformed response for {self.ref_path}: {str(e)}")
            raise StreetStoreError(f"Malformed response: {str(e)}") from e
        except (exceptions.UnavailableError, exceptions.DeadlineExceededError,
                google_auth_exceptions.TransportError, requests.exceptions.RequestException) as e:
            logger.error(f"Could not reach database for {self.ref_path}: {str(e)}")
            raise ConnectivityError(str(e)) from e
        except (exceptions.FirebaseError, google_auth_exceptions.GoogleAuthError) as e:
            logger.error(f"Error reading {self.ref_path}: {str(e)}")
            raise StreetStoreError(str(e)) from e

        if record is None:
            return {}
        if not isinstance(record, dict):
            logger.warning(f"Expected an object at {self.ref_path}, got {type(record).__name__}")
            return {}
        return record

    def close(self):
        if self._app is not None:
            firebase_admin.delete_app(self._app)
            self._app = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


_store = None
_store_lock = threading.Lock()


def get_store():
    """Returns the process-wide store, creating it on first use."""
    global _store

    with _store_lock:
        if _store is None:
            _store = StreetRecordStore.from_config()
        return _store


def reset_store():
    """Closes and forgets the process-wide store."""
    global _store

    with _store_lock:
        if _store is not None:
            _store.close()
            _store = None


atexit.register(reset_store)


def fetch_street_record():
    return get_store().fetch_street_record()
