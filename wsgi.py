"""WSGI entry point for production deployment."""
import sys
import os
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from models.database import Database
from alerts.engine import AlertEngine
from telemetry.scheduler import CycleScheduler
from web.app import create_app

logger = logging.getLogger("netalert.wsgi")

config = load_config(os.environ.get("NETALERT_CONFIG"))
setup_logging(config["logging"].get("level", "INFO"), config["logging"].get("file"))

db = None
if config["database"].get("enabled", True):
    db = Database(config["database"]["path"])
    db.connect()

engine = AlertEngine.from_config(config, db=db)
app = create_app(config, engine)

# One scheduler per worker process; run a single worker to avoid duplicate cycles
scheduler = CycleScheduler(engine, config["engine"]["interval_seconds"])
scheduler.start()
logger.info("NetAlert WSGI app ready")
