"""
Move inline images out of the cache and scorers collections into ``images``.

Older documents stored the photo base64-encoded on the document itself
(``cache.imageData``, ``scorers.avatar``). This one-shot job stores each
payload in the images collection under the SHA-256 of its decoded bytes and
replaces the inline field with an ``imageId`` reference.

Only documents that still carry the inline field are visited, so running the
job again picks up where a failed run stopped and is otherwise a no-op.
Run it with the API stopped:

    picrate-migrate --database-url mongodb://localhost:27017/picrate
"""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import typer
from pymongo.errors import PyMongoError
from rich.console import Console
from rich.table import Table

import config
from database import CACHE, SCORERS, Database
from errors import PicRateError
from fingerprint import fingerprint
from images import ImageStore, decode_inline

log = logging.getLogger(__name__)

# collection -> inline image field
LEGACY_FIELDS = {
    CACHE: "imageData",
    SCORERS: "avatar",
}


@dataclass
class MigrationStats:
    migrated: int = 0
    failed: int = 0
    created: int = 0
    aborted: bool = False


def migrate_document(db: Database, images: ImageStore, collection: str, field: str, doc: dict) -> bool:
    """Normalize one document. Returns True when a new image record was created."""
    if doc[field] is None:
        # Nothing to move; drop the empty field so later runs skip the document.
        db.db[collection].update_one({"_id": doc["_id"]}, {"$unset": {field: ""}})
        log.debug("%s: %s had an empty %s, cleared", collection, doc["_id"], field)
        return False
    data = decode_inline(doc[field])
    image_id = fingerprint(data)
    created = images.put(image_id, data)
    db.db[collection].update_one(
        {"_id": doc["_id"]},
        {"$set": {"imageId": image_id}, "$unset": {field: ""}},
    )
    log.debug("%s: %s -> image %s%s", collection, doc["_id"], image_id, "" if created else " (existing)")
    return created


def migrate_collection(db: Database, images: ImageStore, collection: str, field: str) -> MigrationStats:
    stats = MigrationStats()
    # Only ids are read up front; each document is fetched again when processed.
    ids = [d["_id"] for d in db.db[collection].find({field: {"$exists": True}}, {"_id": 1})]
    log.info("%s: %d document(s) with inline %s", collection, len(ids), field)

    for doc_id in ids:
        try:
            doc = db.db[collection].find_one({"_id": doc_id, field: {"$exists": True}})
            if doc is None:
                continue
            if migrate_document(db, images, collection, field, doc):
                stats.created += 1
            stats.migrated += 1
        except (PicRateError, PyMongoError) as e:
            stats.failed += 1
            log.error("%s: could not migrate document %s: %s", collection, doc_id, e)
    return stats


def migrate_database(db: Database) -> Dict[str, MigrationStats]:
    db.ensure_images()
    images = ImageStore(db)

    report: Dict[str, MigrationStats] = {}
    for collection, field in LEGACY_FIELDS.items():
        try:
            report[collection] = migrate_collection(db, images, collection, field)
        except PyMongoError as e:
            log.exception("%s: migration aborted: %s", collection, e)
            report[collection] = MigrationStats(aborted=True)
    return report


# ── CLI ───────────────────────────────────────────────────────────────────────

app = typer.Typer(
    name="picrate-migrate",
    help="Move inline images from cache and scorers documents into the images collection.",
    add_completion=False,
)
console = Console()


@app.command()
def main(
    database_url: Optional[str] = typer.Option(None, "--database-url", help="MongoDB connection string (default: MONGODB_URI / DATABASE_URL)"),
    database_name: Optional[str] = typer.Option(None, "--database-name", help="Database name (default: DATABASE_NAME or the one in the URL)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every document"),
) -> None:
    """Run the image normalization migration once."""
    config.configure_logging("DEBUG" if verbose else "INFO")

    try:
        db = Database.connect(database_url or config.DATABASE_URL, database_name or config.DATABASE_NAME)
    except PicRateError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)
    try:
        report = migrate_database(db)
    finally:
        db.close()

    table = Table(title="Migration")
    table.add_column("Collection")
    table.add_column("Migrated", justify="right")
    table.add_column("New images", justify="right")
    table.add_column("Failed", justify="right")
    failed = False
    for collection, stats in report.items():
        if stats.aborted:
            table.add_row(collection, "-", "-", "[red]aborted[/red]")
            failed = True
            continue
        table.add_row(collection, str(stats.migrated), str(stats.created), str(stats.failed))
        failed = failed or stats.failed > 0
    console.print(table)

    if failed:
        console.print("[red]Migration finished with errors; re-run to retry the failed documents.[/red]")
        raise typer.Exit(1)
    console.print("[green]Migration completed successfully![/green]")


if __name__ == "__main__":
    app()
