"""Custom SQLAlchemy column types shared by the RepairFlow models"""
from sqlalchemy import TypeDecorator, String, Numeric
import uuid


def generate_uuid() -> str:
    """Generate a UUID string"""
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """UUID stored as VARCHAR(36) on every backend (SQLite and PostgreSQL)"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        return str(value) if value is not None else None

    def process_result_value(self, value, dialect):
        return str(value) if value is not None else None


class Money(TypeDecorator):
    """
    Currency amount kept at cent precision.

    Stored as NUMERIC(12, 2) and handed back to Python as a float rounded to
    two places, so sums computed by the database and in Python agree.
    """
    impl = Numeric(12, 2, asdecimal=False)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return round(float(value), 2)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return round(float(value), 2)
