"""WSGI entrypoint used by Gunicorn."""
import logging
import os

from birdie.app import create_app
from birdie.models import Group
from birdie.services.errors import StorageError
from birdie.services.recalculation import recalculate_group


def _env_bool(name, default=False):
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {'1', 'true', 'yes', 'on'}


def _parse_group_ids(raw_value):
    raw = str(raw_value or '').strip()
    if not raw:
        return []
    if raw in {'all', '*'}:
        return [group.id for group in Group.query.all()]
    return [item.strip() for item in raw.split(',') if item.strip()]


config_name = os.environ.get('FLASK_ENV', 'production')
app = create_app(config_name)
logger = logging.getLogger('birdie.wsgi')

# Optional maintenance replay at boot, before any worker takes traffic.
if _env_bool('RECALCULATE_ON_BOOT', False):
    with app.app_context():
        for group_id in _parse_group_ids(os.environ.get('RECALCULATE_GROUPS', 'all')):
            try:
                summary = recalculate_group(group_id)
                logger.info('Boot recalculation for %s: %s', group_id, summary)
            except StorageError as exc:
                logger.error('Boot recalculation failed for %s: %s', group_id, exc)
