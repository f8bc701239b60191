"""
Clinic Booking Service

FastAPI backend for a university clinic: patient registration, appointment
booking with verifiable appointment codes, QR check-in, and passkey access.
"""

__version__ = "1.0.0"
