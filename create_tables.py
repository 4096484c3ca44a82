from app.db.session import engine
from app.db.base import Base
from app.models import *  # Import all models

print("Creating ZapCodes tables (users, coin_transactions, deployed_sites, subscriptions, ...)")
Base.metadata.create_all(bind=engine)
print("✅ All tables created successfully!")
