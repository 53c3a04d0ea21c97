from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sanctuary.config import get_settings

settings = get_settings()

# One engine per process; disposed by the app lifespan on shutdown
engine = create_async_engine(settings.database_url, echo=False)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


async def create_tables():
    """Create missing tables. There is no migration history; new columns need a fresh table."""
    from sanctuary.models import Base
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

