from dotenv import load_dotenv
load_dotenv()

from app.db.session import engine
from app.db.base import Base
from app.models import Profile, Subscription, TrialEligibility, CallCampaign  # noqa: F401

print("Creating entitlement tables...")
Base.metadata.create_all(bind=engine)
print(f"✅ Tables ready: {', '.join(sorted(Base.metadata.tables))}")
