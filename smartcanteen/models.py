from sqlalchemy import Column, Integer, String, JSON, DateTime, func
from smartcanteen.database import Base


class Document(Base):
    """One named, versioned JSON document of canteen state (menu, ledger, plan...).

    schema_version is the payload format. version_id is the optimistic lock:
    incremented on every write, and a write only lands on the version_id it read.
    """

    __tablename__ = "documents"

    name = Column(String, primary_key=True)
    schema_version = Column(Integer, nullable=False, default=1)
    version_id = Column(Integer, nullable=False, default=1)
    payload = Column(JSON, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
