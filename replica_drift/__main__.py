"""Allow ``python -m replica_drift``."""
from replica_drift.main import run

run()
