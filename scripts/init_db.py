"""
Database initialization script.
Creates the trading_data table and its timestamp index.
"""
from sqlalchemy import inspect
from signal_feed.config.settings import get_settings
from signal_feed.models.base import get_engine, init_db

def init_database():
    """
    Initialize database with all tables.
    Steps:
    1. Create all tables from SQLAlchemy models
    2. Verify the tables exist
    """
    settings = get_settings()
    engine = get_engine()

    print("📡 Signal Feed - Database Initialization")
    print("=" * 50)
    print(f"Database: {engine.url.render_as_string(hide_password=True)}")

    # Step 1: Create all tables
    print("\n1. Creating all tables...")
    try:
        init_db(engine)
        print("  ✓ All tables created")
    except Exception as e:
        print(f"  ✗ Error creating tables: {e}")
        return

    # Step 2: Verify
    print("\n2. Verifying tables...")
    tables = inspect(engine).get_table_names()
    print(f"  ✓ Found {len(tables)} tables:")
    for table in tables:
        print(f"    - {table}")

    print("\n" + "=" * 50)
    print("✅ Database initialization complete!")
    print("\nNext steps:")
    print(f"1. Start API: uvicorn signal_feed.api.main:app --port {settings.API_PORT}")
    print("2. Start Dashboard: streamlit run dashboard/app.py")

if __name__ == "__main__":
    init_database()
