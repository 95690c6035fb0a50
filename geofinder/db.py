from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from geofinder.create_sqlite_engine import engine


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        expire_on_commit=False,
        bind=bind,
    )


# Centralized session factory to avoid creating it in router modules.
Session = make_sessionmaker(engine)
