import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Firebase service account and Realtime Database location
FIREBASE_CREDENTIAL_PATH = os.getenv('FIREBASE_CREDENTIAL_PATH', os.path.join(BASE_DIR, 'service.json'))
FIREBASE_DATABASE_URL = os.getenv(
    'FIREBASE_DATABASE_URL',
    'https://embedded-be95a-default-rtdb.asia-southeast1.firebasedatabase.app/'
)
STREET_REF_PATH = os.getenv('STREET_REF_PATH', '/street')

PORT = int(os.getenv('PORT', '3000'))
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
