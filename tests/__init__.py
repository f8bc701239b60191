"""
Test suite for the Clinic Booking Service.

Contains unit and integration tests for the application's functionality.
"""
import os
import tempfile

# Set environment for testing before the application reads its settings
os.environ["TESTING"] = "1"
os.environ["ENVIRONMENT"] = "testing"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ["CLINIC_TIMEZONE"] = "UTC"
os.environ["PASSKEY_HASH_ROUNDS"] = "4"
os.environ["PASSKEY_RESPONSE_DELAY_SECONDS"] = "0"
os.environ["ADMIN_PASSKEY"] = "111111"
os.environ["STAFF_PASSKEY"] = "333333"
os.environ["DR_ABUNDO_PASSKEY"] = "246810"
os.environ["DR_DECASTRO_PASSKEY"] = "555555"
os.environ["VERIFY_BASE_URL"] = "https://clinic.example.edu/staff/scan"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="clinic-uploads-")
os.environ.pop("SMS_WEBHOOK_URL", None)
