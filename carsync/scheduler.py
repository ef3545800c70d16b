# carsync/scheduler.py
import os
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from .exceptions import CarSyncError
from .services import run_crawl
from .utils import logger

# one worker: crawls of different sites share the dataset and must not overlap
scheduler = BackgroundScheduler(executors={"default": ThreadPoolExecutor(1)})

def _crawl_job(site):
    try:
        run_crawl(site)
    except CarSyncError as e:
        logger.error("Scheduled crawl of %s failed: %s", site, e)

def start_scheduler():
    if scheduler.running:
        return scheduler
    hours = float(os.getenv("CRAWL_INTERVAL_HOURS", "1"))
    sites = [s.strip() for s in os.getenv("CRAWL_SITES", "dubicars,yallamotor").split(",") if s.strip()]
    for site in sites:
        scheduler.add_job(_crawl_job, 'interval', hours=hours, args=[site], id=f"crawl-{site}",
                          max_instances=1, coalesce=True, replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started for %s every %s hour(s)", ", ".join(sites), hours)
    return scheduler
