"""
Background scheduler for automated loyalty tasks.

Handles:
- Tier degradation check (daily at 2 AM UTC)
"""
import os
import atexit
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler = None
_flask_app = None  # Flask app reference for job context


def init_scheduler(app):
    """
    Initialize the background scheduler.

    Only runs in production or when ENABLE_SCHEDULER=true, never in testing.
    Only one process per deployment should run it (SCHEDULER_RUNNING guard).
    """
    global _scheduler, _flask_app

    _flask_app = app

    if app.config.get('TESTING'):
        logger.debug('[Scheduler] Disabled in testing mode')
        return

    if not (os.getenv('FLASK_ENV') == 'production' or os.getenv('ENABLE_SCHEDULER') == 'true'):
        logger.info('[Scheduler] Disabled (set FLASK_ENV=production or ENABLE_SCHEDULER=true)')
        return

    # gunicorn workers share the environment of the preloaded master
    if os.getenv('SCHEDULER_RUNNING') == 'true':
        logger.info('[Scheduler] Already running in another process')
        return

    _scheduler = BackgroundScheduler(
        timezone='UTC',
        job_defaults={
            'coalesce': True,  # Combine missed runs
            'max_instances': 1,  # Prevent concurrent runs
            'misfire_grace_time': 3600  # 1 hour grace period
        }
    )

    _scheduler.add_job(
        run_tier_degradation,
        trigger=CronTrigger(hour=2, minute=0),
        id='tier_degradation',
        name='Process tier expiry, renewals and downgrades',
        replace_existing=True
    )

    _scheduler.start()
    os.environ['SCHEDULER_RUNNING'] = 'true'
    logger.info('[Scheduler] Started: tier degradation daily at 2:00 UTC')

    atexit.register(shutdown_scheduler)


def shutdown_scheduler():
    """Gracefully shutdown the scheduler."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info('[Scheduler] Shutdown complete')


def run_tier_degradation():
    """Run the tier expiry check for every profile. Runs daily."""
    global _flask_app

    if not _flask_app:
        logger.error('[Scheduler] Flask app not initialized')
        return

    logger.info('[Scheduler] Processing tier degradations...')

    with _flask_app.app_context():
        try:
            from ..services.profile_service import LoyaltyProfileService

            result = LoyaltyProfileService().process_degradations()
            logger.info(
                f'[Scheduler] Tier degradation complete: {result["processed"]} checked, '
                f'{result["renewed"]} renewed, {result["downgraded"]} downgraded, '
                f'{len(result["errors"])} errors'
            )
        except Exception as e:
            logger.error(f'[Scheduler] Tier degradation failed: {e}')
