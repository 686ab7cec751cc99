from sqlalchemy import Column, Integer, String

from app.db.base import Base


class VpnServer(Base):
    __tablename__ = "vpn_servers"

    # Positional id (1..n); renumbered after a delete so the admin list stays contiguous
    id = Column(Integer, primary_key=True, autoincrement=False)
    country = Column(String, nullable=False)
    location = Column(String, nullable=False)
    ip = Column(String, nullable=True)
    port = Column(Integer, nullable=True)
    username = Column(String, nullable=True)
    password = Column(String, nullable=True)
