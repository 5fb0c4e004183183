import os
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
import redis.asyncio as redis
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# PostgreSQL Database
POSTGRES_URI = os.getenv("POSTGRES_URI")
SQL_ECHO = os.getenv("SQL_ECHO", "0") == "1"
if POSTGRES_URI:
    engine = create_async_engine(POSTGRES_URI, echo=SQL_ECHO, pool_pre_ping=True)
    AsyncSessionLocal = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
else:
    engine = None
    AsyncSessionLocal = None

# Redis Database
REDIS_URI = os.getenv("REDIS_URI")
if REDIS_URI:
    redis_client = redis.from_url(REDIS_URI)
else:
    redis_client = None

# Database dependency
async def get_db():
    if AsyncSessionLocal is not None:
        async with AsyncSessionLocal() as session:
            yield session
    else:
        yield None


async def create_tables():
    """Create all tables on the configured engine (no-op without POSTGRES_URI)."""
    if engine is None:
        return
    from linkist.models import Base
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
