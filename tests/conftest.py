import os

# Keep module-level engine/settings off the production database during tests.
os.environ.setdefault("RM_DATABASE_URL", "sqlite://")
