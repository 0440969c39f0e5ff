"""
Configuration management for ClassHub backend.
"""
import os
from dotenv import load_dotenv

# Base paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Load environment variables from the project root .env, if present
load_dotenv(os.path.join(BASE_DIR, ".env"))

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")

# Table names
ASSIGNMENTS_TABLE = os.getenv("CLASSHUB_ASSIGNMENTS_TABLE", "assignments")
WORKSHEETS_TABLE = os.getenv("CLASSHUB_WORKSHEETS_TABLE", "worksheets")
CLASSES_TABLE = os.getenv("CLASSHUB_CLASSES_TABLE", "classes")
STUDENTS_TABLE = os.getenv("CLASSHUB_STUDENTS_TABLE", "students")

# Server configuration
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
DEBUG = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")

# Worksheet sync configuration
SYNC_INTERVAL_SECONDS = float(os.getenv("SYNC_INTERVAL_SECONDS", "3"))
STATUS_REVERT_SECONDS = float(os.getenv("STATUS_REVERT_SECONDS", "2"))
MAX_MESSAGE_BYTES = int(os.getenv("MAX_MESSAGE_BYTES", str(512 * 1024)))

# Sandbox attributes for the embedded worksheet frame.
# No allow-same-origin (no host cookies/storage), no allow-top-navigation.
SANDBOX_PERMISSIONS = "allow-scripts allow-forms"

QUIZ_AUTO_FEEDBACK = "This quiz was automatically graded."
