from vereinsknete.backend.src.core.config import get_settings
from vereinsknete.backend.src.db import Base, get_engine
from vereinsknete.backend.src.models import *  # noqa


def init_db():
    engine = get_engine()
    print(f"Connecting to {get_settings().database_url}")
    Base.metadata.create_all(bind=engine)
    print("Tables created: " + ", ".join(sorted(Base.metadata.tables)))


if __name__ == "__main__":
    init_db()
