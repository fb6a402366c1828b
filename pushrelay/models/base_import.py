from datetime import datetime, timezone  # noqa: F401

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Index, String, Text  # noqa: F401

from pushrelay.db.session import Base  # noqa: F401
