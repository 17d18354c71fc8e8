"""
Sauvegarde planifiée des tables vers le stockage objet.

Chaque jour à BACKUP_HOUR (heure locale du serveur), chaque table de BACKUP_TABLES est exportée
en JSON compressé gzip sous backups/<YYYY-MM-DD>/<table>.json.gz, puis les dossiers de
sauvegarde plus anciens que BACKUP_RETENTION_DAYS sont supprimés.
Un échec sur une table est journalisé et n'empêche pas les suivantes.
"""
import asyncio
import gzip
import json
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from commerce import config
from commerce.customers import repository
from commerce.storage import service as storage

logger = logging.getLogger(__name__)

BACKUP_ROOT = "backups"

def is_enabled() -> bool:
    return config.BACKUP_ENABLED or config.is_production()

def seconds_until_next_run(target_hour: int, now: Optional[datetime] = None) -> float:
    """Secondes avant la prochaine exécution (aujourd'hui si l'heure n'est pas passée, sinon demain)."""
    now = now or datetime.now()
    next_run = now.replace(hour=target_hour, minute=0, second=0, microsecond=0)
    if now >= next_run:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()

def backup_path(table: str, day: date) -> str:
    return f"{BACKUP_ROOT}/{day.isoformat()}/{table}.json.gz"

def export_table(table: str, day: date) -> str:
    rows = repository.fetch_table_rows(table)
    payload = gzip.compress(json.dumps(rows, default=str).encode("utf-8"))
    path = backup_path(table, day)
    storage.upload_bytes(path, payload, "application/gzip", upsert=True)
    logger.info("Backup of %s: %d rows -> %s", table, len(rows), path)
    return path

def prune_old_backups(retention_days: int, today: Optional[date] = None) -> List[str]:
    """
    Supprime les dossiers backups/<date> antérieurs à today - retention_days.
    Retour: liste des dossiers supprimés.
    """
    today = today or date.today()
    cutoff = today - timedelta(days=retention_days)
    removed: List[str] = []
    for entry in storage.list_folder(BACKUP_ROOT):
        name = entry.get("name") or ""
        try:
            day = date.fromisoformat(name)
        except ValueError:
            continue
        if day >= cutoff:
            continue
        folder = f"{BACKUP_ROOT}/{name}"
        paths = [f"{folder}/{f.get('name')}" for f in storage.list_folder(folder) if f.get("name")]
        if storage.remove_files(paths):
            removed.append(folder)
    if removed:
        logger.info("Old backups removed: %s", ", ".join(removed))
    return removed

def perform_backup(tables: Optional[List[str]] = None, today: Optional[date] = None) -> Dict[str, bool]:
    """Exporte chaque table puis purge les anciennes sauvegardes. Retour: {table: succès}."""
    today = today or date.today()
    results: Dict[str, bool] = {}
    for table in tables if tables is not None else config.BACKUP_TABLES:
        try:
            export_table(table, today)
            results[table] = True
        except Exception:
            logger.exception("Backup failed for table %s", table)
            results[table] = False
    try:
        prune_old_backups(config.BACKUP_RETENTION_DAYS, today)
    except Exception:
        logger.exception("Backup pruning failed")
    return results

async def run_backup_scheduler(target_hour: Optional[int] = None) -> None:
    """Boucle quotidienne; s'arrête par annulation de la tâche (arrêt de l'application)."""
    hour = config.BACKUP_HOUR if target_hour is None else target_hour
    logger.info("Backup scheduler started (daily at %02d:00)", hour)
    try:
        while True:
            await asyncio.sleep(seconds_until_next_run(hour))
            results = await run_in_threadpool(perform_backup)
            logger.info("Scheduled backup completed: %s", results)
    finally:
        logger.info("Backup scheduler stopped")

def start_backup_task() -> Optional[asyncio.Task]:
    if not is_enabled():
        return None
    return asyncio.create_task(run_backup_scheduler(), name="backup-scheduler")
