#!/usr/bin/env python3
"""
Database initialization script for Linkist
Creates all necessary tables in PostgreSQL and optionally adds a sample user
"""
import asyncio
import os
import sys
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy import select
from linkist.models import Base, User

# Load environment variables
load_dotenv()

async def create_sample_user(session: AsyncSession):
    """Create a verified sample user for local testing"""
    stmt = select(User.id).where(User.email == "test@example.com")
    result = await session.execute(stmt)
    existing_user = result.fetchone()
    if existing_user:
        print(f"✅ Sample user already exists with ID: {existing_user[0]}")
        return

    sample_user = User(
        email="test@example.com",
        first_name="Test",
        last_name="User",
        phone_number="+911234567890",
        country="IN",
        country_code="91",
        role="user",
        email_verified=True,
    )
    session.add(sample_user)
    await session.commit()
    await session.refresh(sample_user)
    print(f"✅ Created sample user with ID: {sample_user.id}")

async def create_tables(with_sample: bool = False):
    """Create all database tables"""
    postgres_uri = os.getenv("POSTGRES_URI")
    if not postgres_uri:
        print("❌ POSTGRES_URI not found in environment variables")
        return

    engine = create_async_engine(postgres_uri, echo=True)
    try:
        print("📝 Creating tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print("✅ All tables created successfully!")

        if with_sample:
            async with AsyncSession(engine) as session:
                await create_sample_user(session)
    finally:
        await engine.dispose()

if __name__ == "__main__":
    print("🚀 Initializing Linkist database...")
    asyncio.run(create_tables(with_sample="--sample" in sys.argv))
    print("🎉 Database initialization complete!")
